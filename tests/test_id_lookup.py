import unittest

from listarr.http_client import FetchError
from listarr.id_lookup import ExternalIds, IdLookup
from tests.fakes import FakeHttpClient

MAL_URL = "https://ids.example/myanimelist_object.json"
LB_URL = "https://ids.example/letterboxd_object.json"


class TestIdLookupLoad(unittest.TestCase):
    def load(self, mal_payload, letterboxd_payload):
        client = FakeHttpClient(json_routes={MAL_URL: mal_payload, LB_URL: letterboxd_payload})
        return IdLookup.load(client, mal_url=MAL_URL, letterboxd_url=LB_URL)

    def test_parses_both_snapshots(self) -> None:
        lookup = self.load(
            {
                "1": {"title": "Cowboy Bebop", "themoviedb": 30991, "thetvdb": 76885},
                "5": {"title": "Cowboy Bebop: Tengoku no Tobira", "themoviedb": 11299},
                "9": {"title": "Unmapped"},
                "$schema": "https://example/schema.json",
            },
            {
                "perfect-blue": {"themoviedb": 10494, "myanimelist": 437},
                "heat": {"themoviedb": 949},
                "anime-without-ids": {"anidb": 12},
                "nothing": {},
            },
        )

        self.assertEqual(lookup.load_errors, [])
        self.assertEqual(lookup.ids_for_mal(1), ExternalIds(tmdb="30991", tvdb="76885", is_anime=True))
        self.assertEqual(lookup.ids_for_mal(5).tmdb, "11299")
        self.assertIsNone(lookup.ids_for_mal(5).tvdb)
        self.assertIsNone(lookup.ids_for_mal(9))

        self.assertTrue(lookup.ids_for_letterboxd("perfect-blue").is_anime)
        self.assertFalse(lookup.ids_for_letterboxd("heat").is_anime)
        self.assertTrue(lookup.ids_for_letterboxd("anime-without-ids").is_anime)
        self.assertIsNone(lookup.ids_for_letterboxd("nothing"))

    def test_failed_snapshot_is_recorded_and_other_loads(self) -> None:
        lookup = self.load(FetchError(MAL_URL, 500), {"heat": {"themoviedb": 949}})

        self.assertEqual(len(lookup.load_errors), 1)
        self.assertIn("MAL", lookup.load_errors[0])
        self.assertIsNone(lookup.ids_for_mal(1))
        self.assertEqual(lookup.ids_for_letterboxd("heat").tmdb, "949")

    def test_malformed_snapshot_is_a_load_error(self) -> None:
        lookup = self.load(["not", "an", "object"], {"heat": {"themoviedb": "not-a-number"}})

        self.assertEqual(len(lookup.load_errors), 2)
        self.assertEqual(lookup.mal_ids, {})
        self.assertEqual(lookup.letterboxd_ids, {})


if __name__ == "__main__":
    unittest.main()
