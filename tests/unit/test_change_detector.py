import unittest

from src.change_detector import (
    diff_documents,
    diff_documents_by_edit_script,
    get_change_detector,
)
from src.properties_parser import parse_lines


class TestContentDiff(unittest.TestCase):

    def test_new_and_modified_keys(self):
        previous = parse_lines(['a=X', 'b=Y'])
        current = parse_lines(['a=X', 'b=Z', 'c=W'])
        self.assertEqual(diff_documents(previous, current), frozenset({'b', 'c'}))

    def test_identical_documents_have_no_changes(self):
        document = parse_lines(['# c', 'a=1', '', 'b=2 \\', '  more'])
        self.assertEqual(diff_documents(document, document), frozenset())

    def test_deleted_keys_are_not_reported(self):
        previous = parse_lines(['a=1', 'gone=2'])
        current = parse_lines(['a=1'])
        self.assertEqual(diff_documents(previous, current), frozenset())

    def test_comments_and_blank_lines_are_ignored(self):
        previous = parse_lines(['# old comment', 'a=1'])
        current = parse_lines(['# new comment', '', 'a=1'])
        self.assertEqual(diff_documents(previous, current), frozenset())

    def test_lines_compared_as_sequence(self):
        # Same joined text, different line split.
        previous = parse_lines(['a=one \\', 'two'])
        current = parse_lines(['a=one \\two'])
        self.assertEqual(diff_documents(previous, current), frozenset({'a'}))

    def test_whitespace_change_counts_as_modification(self):
        previous = parse_lines(['a=value'])
        current = parse_lines(['a = value'])
        self.assertEqual(diff_documents(previous, current), frozenset({'a'}))

    def test_reordering_is_not_a_change(self):
        previous = parse_lines(['a=1', 'b=2'])
        current = parse_lines(['b=2', 'a=1'])
        self.assertEqual(diff_documents(previous, current), frozenset())

    def test_empty_previous_marks_everything_new(self):
        current = parse_lines(['a=1', '# c', 'b=2'])
        self.assertEqual(diff_documents((), current), frozenset({'a', 'b'}))


class TestEditScriptDiff(unittest.TestCase):

    def test_matches_content_policy_for_simple_edits(self):
        previous = parse_lines(['a=X', 'b=Y'])
        current = parse_lines(['a=X', 'b=Z', 'c=W'])
        self.assertEqual(diff_documents_by_edit_script(previous, current), frozenset({'b', 'c'}))

    def test_moved_entry_is_reported(self):
        previous = parse_lines(['a=1', 'b=2', 'c=3'])
        current = parse_lines(['c=3', 'a=1', 'b=2'])
        self.assertEqual(diff_documents_by_edit_script(previous, current), frozenset({'c'}))


class TestPolicySelection(unittest.TestCase):

    def test_known_policies(self):
        self.assertIs(get_change_detector('content'), diff_documents)
        self.assertIs(get_change_detector('edit_script'), diff_documents_by_edit_script)

    def test_unknown_policy(self):
        with self.assertRaises(ValueError):
            get_change_detector('timestamps')


if __name__ == '__main__':
    unittest.main()
