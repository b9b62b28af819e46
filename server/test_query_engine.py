import unittest
from batch_executor import BatchExecutor
from errors import InvalidQuery, NotFound, ParseError
from kv_client import InMemoryKeyValueClient
from query_engine import GetParams, Query, QueryEngine

class TestQuery(unittest.TestCase):
    def test_from_dict(self):
        q = Query.from_dict({"operator": "eq", "field": "pets:status", "value": ["available", "sold"]})
        self.assertEqual(q.values(), ["available", "sold"])
        q = Query.from_dict({"operator": "$eq", "field": "users:username", "value": "alice"})
        self.assertEqual(q.values(), ["alice"])
        self.assertIs(Query.from_dict(q), q)

    def test_missing_parts(self):
        for bad in (
            {"field": "pets:status", "value": "sold"},
            {"operator": "eq", "value": "sold"},
            {"operator": "eq", "field": "pets:status"},
            {"operator": "eq", "field": "pets:status", "value": None},
        ):
            with self.assertRaises(InvalidQuery):
                Query.from_dict(bad)

    def test_malformed(self):
        with self.assertRaises(InvalidQuery):
            Query.from_dict(["eq", "pets:status", "sold"])
        with self.assertRaises(InvalidQuery):
            Query.from_dict({"operator": "gt", "field": "pets:status", "value": "sold"})
        with self.assertRaises(InvalidQuery):
            Query.from_dict({"operator": "eq", "field": "pets:status", "value": 3})
        with self.assertRaises(InvalidQuery):
            Query.from_dict({"operator": "eq", "field": "pets:status", "value": ["sold", 3]})

class TestQueryEngine(unittest.TestCase):
    def setUp(self):
        self.client = InMemoryKeyValueClient()
        self.engine = QueryEngine(BatchExecutor(self.client))

        # Seed the store directly with the layout CollectionStore writes
        self.client.set("pets:1", '{"id":1,"status":"available","tags":[{"name":"dog"},{"name":"cat"}]}')
        self.client.set("pets:2", '{"id":2,"status":"sold","tags":[{"name":"dog"}]}')
        self.client.set("pets:10", '{"id":10,"status":"available"}')
        for pet_id in (1, 2, 10):
            self.client.sadd("pets", pet_id)
        self.client.sadd("pets:status:available", 10, 1)
        self.client.sadd("pets:status:sold", 2)
        self.client.sadd("pets:tags:dog", 1, 2)
        self.client.sadd("pets:tags:cat", 1)

    def ids(self, docs):
        return [d["id"] for d in docs]

    def test_find_one(self):
        self.assertEqual(self.engine.find_one("pets", "2")["status"], "sold")
        self.assertEqual(self.engine.find_one("pets", 2)["id"], 2)

    def test_find_one_not_found(self):
        with self.assertRaises(NotFound):
            self.engine.find_one("pets", "404")

    def test_find_one_non_string_slot_is_not_found(self):
        # An index set living at a primary-slot key is not a document
        self.client.sadd("pets:77", "x")
        with self.assertRaises(NotFound):
            self.engine.find_one("pets", "77")

    def test_find_one_parse_error(self):
        self.client.set("pets:3", "{broken")
        with self.assertRaises(ParseError):
            self.engine.find_one("pets", "3")

    def test_find_scalar_value(self):
        docs = self.engine.find("pets", {"operator": "eq", "field": "pets:status", "value": "available"})
        # numeric order, not lexicographic
        self.assertEqual(self.ids(docs), [1, 10])

    def test_find_multi_value_is_union_with_duplicates(self):
        query = {"operator": "eq", "field": "pets.tags.name", "value": ["dog", "cat"]}
        self.assertEqual(self.ids(self.engine.find("pets", query)), [1, 2, 1])
        self.assertEqual(self.ids(self.engine.find("pets", query, GetParams(distinct=True))), [1, 2])

    def test_find_no_matches_is_empty_list(self):
        docs = self.engine.find("pets", {"operator": "eq", "field": "pets:status", "value": ["pending"]})
        self.assertEqual(docs, [])
        docs = self.engine.find("pets", {"operator": "eq", "field": "pets:status", "value": []})
        self.assertEqual(docs, [])

    def test_find_skips_drifted_ids(self):
        self.client.sadd("pets:status:available", 99)   # no slot
        self.client.sadd("pets:status:available", 5)
        self.client.set("pets:5", "not json")            # unparsable slot
        docs = self.engine.find("pets", {"operator": "eq", "field": "status", "value": "available"})
        self.assertEqual(self.ids(docs), [1, 10])

    def test_find_invalid_query(self):
        with self.assertRaises(InvalidQuery):
            self.engine.find("pets", {"field": "pets:status", "value": "sold"})

    def test_find_all(self):
        self.assertEqual(self.ids(self.engine.find_all("pets")), [1, 2, 10])
        self.assertEqual(self.engine.find_all("users"), [])

if __name__ == "__main__":
    unittest.main()
