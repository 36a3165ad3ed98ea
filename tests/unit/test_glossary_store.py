import os
import tempfile
import unittest

from src.errors import ApiErrorCode, GlossaryApiError, GlossaryNotFoundError
from src.glossary_lifecycle import GlossaryLifecycle, GlossarySpec, GlossaryState
from src.glossary_store import CsvGlossarySourceInspector, LocalGlossaryBackend, load_glossary_terms

GLOSSARY_CSV = "en,DE,fr\nWallet,Geldbörse,Portefeuille\nTrade,Handel,\n,leer,vide\n"


class GlossaryStoreTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.csv_path = os.path.join(self.temp_dir.name, 'glossary.csv')
        with open(self.csv_path, 'w', encoding='utf-8', newline='') as f:
            f.write(GLOSSARY_CSV)


class TestLoadGlossaryTerms(GlossaryStoreTestCase):

    def test_reads_pairs_and_skips_blank_cells(self):
        self.assertEqual(load_glossary_terms(self.csv_path, 'en', 'de'), {'Wallet': 'Geldbörse', 'Trade': 'Handel'})
        self.assertEqual(load_glossary_terms(self.csv_path, 'en', 'fr'), {'Wallet': 'Portefeuille'})

    def test_missing_file(self):
        with self.assertRaises(GlossaryApiError) as ctx:
            load_glossary_terms(os.path.join(self.temp_dir.name, 'nope.csv'), 'en', 'de')
        self.assertEqual(ctx.exception.code, ApiErrorCode.NOT_FOUND)

    def test_missing_column(self):
        with self.assertRaises(GlossaryApiError) as ctx:
            load_glossary_terms(self.csv_path, 'en', 'ja')
        self.assertEqual(ctx.exception.code, ApiErrorCode.INVALID_ARGUMENT)


class TestCsvGlossarySourceInspector(GlossaryStoreTestCase):

    def test_header_match_is_case_insensitive(self):
        inspector = CsvGlossarySourceInspector(self.csv_path)
        self.assertTrue(inspector.contains_language('de'))
        self.assertTrue(inspector.contains_language('FR'))
        self.assertFalse(inspector.contains_language('ja'))

    def test_missing_source_contains_nothing(self):
        inspector = CsvGlossarySourceInspector(os.path.join(self.temp_dir.name, 'absent.csv'))
        self.assertFalse(inspector.contains_language('de'))


class TestLocalGlossaryBackend(GlossaryStoreTestCase):

    def setUp(self):
        super().setUp()
        self.backend = LocalGlossaryBackend(os.path.join(self.temp_dir.name, 'store'))
        self.addCleanup(self.backend.close)

    def test_create_get_delete(self):
        spec = GlossarySpec('glossary-de', 'en', 'de', self.csv_path)

        glossary = self.backend.start_create(spec).result(timeout=10)

        self.assertEqual(glossary.terms, {'Wallet': 'Geldbörse', 'Trade': 'Handel'})
        stored = self.backend.get('glossary-de')
        self.assertEqual(stored, glossary)
        self.assertEqual(stored.entry_count, 2)

        self.backend.delete('glossary-de')
        with self.assertRaises(GlossaryNotFoundError):
            self.backend.get('glossary-de')

    def test_create_twice_reports_already_exists(self):
        spec = GlossarySpec('glossary-de', 'en', 'de', self.csv_path)
        self.backend.start_create(spec).result(timeout=10)

        with self.assertRaises(GlossaryApiError) as ctx:
            self.backend.start_create(spec).result(timeout=10)
        self.assertEqual(ctx.exception.code, ApiErrorCode.ALREADY_EXISTS)

    def test_delete_missing_raises_not_found(self):
        with self.assertRaises(GlossaryNotFoundError):
            self.backend.delete('glossary-xx')

    def test_upload_source_copies_file(self):
        stored_path = self.backend.upload_source(self.csv_path, 'DE')
        self.assertTrue(stored_path.endswith(os.path.join('sources', 'glossary_de.csv')))
        with open(stored_path, 'r', encoding='utf-8') as f:
            self.assertEqual(f.read(), GLOSSARY_CSV)

    def test_upload_missing_source(self):
        with self.assertRaises(GlossaryApiError):
            self.backend.upload_source(os.path.join(self.temp_dir.name, 'absent.csv'), 'de')

    def test_lifecycle_creates_and_reuses_glossary(self):
        lifecycle = GlossaryLifecycle(self.backend, CsvGlossarySourceInspector(self.csv_path), self.csv_path,
                                      poll_interval=0.01, creation_timeout=10)

        first = lifecycle.resolve('de')
        second = lifecycle.resolve('de')
        skipped = lifecycle.resolve('ja')

        self.assertEqual(first.state, GlossaryState.READY)
        self.assertEqual(second.state, GlossaryState.EXISTS)
        self.assertEqual(second.glossary.terms['Trade'], 'Handel')
        self.assertEqual(skipped.state, GlossaryState.SKIPPED)

    def write_glossary_file(self, name, content):
        os.makedirs(self.backend.glossary_dir, exist_ok=True)
        with open(os.path.join(self.backend.glossary_dir, f'{name}.json'), 'w', encoding='utf-8') as f:
            f.write(content)

    def test_get_corrupt_file_raises_internal_error(self):
        self.write_glossary_file('glossary-de', '{}')
        self.write_glossary_file('glossary-fr', '{"name": ')

        for name in ('glossary-de', 'glossary-fr'):
            with self.assertRaises(GlossaryApiError) as ctx:
                self.backend.get(name)
            self.assertEqual(ctx.exception.code, ApiErrorCode.INTERNAL)

    def test_lifecycle_fails_on_corrupt_glossary_file(self):
        self.write_glossary_file('glossary-de', '{}')
        lifecycle = GlossaryLifecycle(self.backend, CsvGlossarySourceInspector(self.csv_path), self.csv_path,
                                      poll_interval=0.01, creation_timeout=10)

        resolution = lifecycle.resolve('de')

        self.assertEqual(resolution.state, GlossaryState.FAILED)
        self.assertEqual(resolution.history, [GlossaryState.UNKNOWN, GlossaryState.FAILED])
        self.assertIsInstance(resolution.error, GlossaryApiError)

    def test_lifecycle_reuses_glossary_created_concurrently(self):
        spec = GlossarySpec('glossary-fr', 'en', 'fr', self.csv_path)
        self.backend.start_create(spec).result(timeout=10)
        lifecycle = GlossaryLifecycle(self.backend, CsvGlossarySourceInspector(self.csv_path), self.csv_path,
                                      poll_interval=0.01, creation_timeout=10)

        glossary = lifecycle.create_and_wait(lifecycle.build_spec('fr'))

        self.assertEqual(glossary.terms, {'Wallet': 'Portefeuille'})


if __name__ == '__main__':
    unittest.main()
