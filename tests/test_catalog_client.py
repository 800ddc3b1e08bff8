"""
Unit tests for the CatalogClient helper class.
"""

import unittest

from pg_node2graph import helper


class DummyCursor:
    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error
        self.queries = []
        self.closed = False

    def execute(self, query, params=None):
        if self.error is not None:
            raise self.error
        self.queries.append((query, params))

    def fetchone(self):
        return self.row

    def close(self):
        self.closed = True


class DummyConn:
    def __init__(self, cursor):
        self.closed = False
        self.session = {}
        self.cursor_obj = cursor

    def cursor(self):
        return self.cursor_obj

    def set_session(self, **kwargs):
        self.session = kwargs

    def close(self):
        self.closed = True


class TestCatalogClient(unittest.TestCase):
    def setUp(self):
        # patch psycopg2.connect, the client connects on first lookup
        self._orig_connect = helper.psycopg2.connect
        self.connect_calls = []
        self.cur = DummyCursor()

        def connect(dsn):
            self.connect_calls.append(dsn)
            return DummyConn(self.cur)

        helper.psycopg2.connect = connect
        self.client = helper.CatalogClient("postgres://u:p@h:5433/db")

    def tearDown(self):
        # restore original psycopg2.connect
        helper.psycopg2.connect = self._orig_connect

    def test_connects_lazily(self):
        self.assertEqual(self.connect_calls, [])
        self.assertIsNone(self.client.connection)

    def test_fetch_view_node_tree(self):
        self.cur.row = ("({QUERY :commandType 1})",)
        text = self.client.fetch_view_node_tree("public.v")

        self.assertEqual(text, "{QUERY :commandType 1}")
        self.assertEqual(self.connect_calls, ["postgres://u:p@h:5433/db"])
        self.assertTrue(self.client.connection.session["readonly"])
        self.assertEqual(self.cur.queries[0][1], ["public.v"])
        self.assertTrue(self.cur.closed)

    def test_cached_node_tree(self):
        self.cur.row = ("({QUERY})",)
        self.client.fetch_view_node_tree("v")
        self.client.fetch_view_node_tree("v")

        self.assertEqual(len(self.cur.queries), 1)
        self.assertEqual(len(self.connect_calls), 1)

    def test_view_not_found(self):
        with self.assertRaises(LookupError):
            self.client.fetch_view_node_tree("missing")

    def test_query_error_raised(self):
        self.cur.error = helper.psycopg2.Error("relation does not exist")
        with self.assertRaises(helper.psycopg2.Error):
            self.client.fetch_view_node_tree("missing")
        self.assertTrue(self.cur.closed)

    def test_connection_error_raised(self):
        def connect(dsn):
            raise helper.psycopg2.OperationalError("connection refused")

        helper.psycopg2.connect = connect
        with self.assertRaises(helper.psycopg2.OperationalError):
            self.client.fetch_view_node_tree("v")
        self.assertIsNone(self.client.connection)

    def test_unwrap_list(self):
        self.assertEqual(helper.CatalogClient.unwrap_list(" ({A}) \n"), "{A}")
        self.assertEqual(helper.CatalogClient.unwrap_list("{A}"), "{A}")

    def test_close(self):
        self.cur.row = ("({QUERY})",)
        self.client.fetch_view_node_tree("v")
        connection = self.client.connection

        self.client.close()
        self.assertIsNone(self.client.connection)
        self.assertTrue(connection.closed)


if __name__ == "__main__":
    unittest.main()
