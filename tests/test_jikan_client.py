import unittest

from listarr.adapters.jikan_client import JikanClient
from tests.fakes import FakeHttpClient, anime_payload

BASE = "https://jikan.example/v4"


class TestJikanClient(unittest.TestCase):
    def test_get_anime(self) -> None:
        payload = anime_payload(1, "TV", 26, title="Cowboy Bebop")
        payload["images"] = {"webp": {"image_url": "https://cdn.example/1.webp"}}
        client = JikanClient(FakeHttpClient(json_routes={f"{BASE}/anime/1": {"data": payload}}), BASE)

        anime = client.get_anime(1)

        self.assertEqual(anime.display_title, "Cowboy Bebop")
        self.assertEqual(anime.aired.from_, "2015-04-01T00:00:00+00:00")
        self.assertEqual(anime.image_url, "https://cdn.example/1.webp")
        self.assertTrue(anime.is_multi_episode_tv)

    def test_get_relations(self) -> None:
        data = [
            {"relation": "Prequel", "entry": [{"mal_id": 2, "type": "anime", "name": "S1"}]},
            {"relation": "Adaptation", "entry": [{"mal_id": 9, "type": "manga", "name": "Manga"}]},
        ]
        client = JikanClient(FakeHttpClient(json_routes={f"{BASE}/anime/3/relations": {"data": data}}), BASE)

        relations = client.get_relations(3)

        self.assertEqual([r.relation for r in relations], ["Prequel", "Adaptation"])
        self.assertEqual(relations[1].entry[0].type, "manga")

    def test_missing_data_is_value_error(self) -> None:
        client = JikanClient(FakeHttpClient(json_routes={f"{BASE}/anime/4": {"status": 404}}), BASE)

        with self.assertRaises(ValueError):
            client.get_anime(4)


if __name__ == "__main__":
    unittest.main()
