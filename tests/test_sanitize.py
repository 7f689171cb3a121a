from unittest import TestCase

from syncmyworkbin.sanitize import sanitize


class SanitizePosixTest(TestCase):
	def test_plain_name_is_unchanged(self):
		self.assertEqual(sanitize("Lecture 1.pdf", windows=False), "Lecture 1.pdf")

	def test_separator_and_null_are_replaced(self):
		self.assertEqual(sanitize("a/b\0c", windows=False), "a-b-c")

	def test_other_characters_are_kept(self):
		self.assertEqual(sanitize('what? <now>: "x"', windows=False), 'what? <now>: "x"')

	def test_dot_names_cannot_escape(self):
		self.assertEqual(sanitize("..", windows=False), "--")
		self.assertEqual(sanitize(".", windows=False), "-")
		self.assertEqual(sanitize(".hidden", windows=False), ".hidden")

	def test_empty_name_is_replaced(self):
		self.assertEqual(sanitize("", windows=False), "-")
		self.assertEqual(sanitize("   ", windows=True), "-")

	def test_partial_download_prefix_is_escaped(self):
		self.assertEqual(sanitize("~!A.pdf.part", windows=False), "~-A.pdf.part")
		self.assertEqual(sanitize("~!A.pdf.part", windows=True), "~-A.pdf.part")
		self.assertEqual(sanitize("~A.pdf", windows=False), "~A.pdf")
		self.assertEqual(sanitize("A~!.pdf", windows=False), "A~!.pdf")

	def test_never_contains_separator_or_null(self):
		names = ["", "/", "\0", "//\0\0", "a/../b", "/etc/passwd", "\\x", "ü/ö", "a" * 1000]
		for name in names:
			result = sanitize(name, windows=False)
			self.assertNotIn("/", result)
			self.assertNotIn("\0", result)


class SanitizeWindowsTest(TestCase):
	def test_illegal_characters_are_replaced(self):
		self.assertEqual(sanitize('a<b>c:d"e/f\\g|h?i*j', windows=True), "a-b-c-d-e-f-g-h-i-j")

	def test_control_characters_are_replaced(self):
		self.assertEqual(sanitize("a\x01b\x7fc", windows=True), "a-b\x7fc")

	def test_trimmed(self):
		self.assertEqual(sanitize("  Tutorial  ", windows=True), "Tutorial")

	def test_trailing_dots_are_replaced(self):
		self.assertEqual(sanitize("notes..", windows=True), "notes-")

	def test_reserved_names(self):
		self.assertEqual(sanitize("CON", windows=True), "-")
		self.assertEqual(sanitize("lpt1.txt", windows=True), "-")
		self.assertEqual(sanitize("console.txt", windows=True), "console.txt")

	def test_truncated_to_255_bytes(self):
		self.assertEqual(len(sanitize("a" * 300, windows=True).encode()), 255)
		# multi byte characters are never cut in half
		result = sanitize("ä" * 200, windows=True)
		self.assertLessEqual(len(result.encode()), 255)
		self.assertEqual(result, "ä" * 127)

	def test_never_contains_separator_or_null(self):
		for name in ["", "/", "\\", "\0", "a/b\\c\0d", " . ", "\x00" * 10]:
			result = sanitize(name, windows=True)
			for forbidden in ("/", "\\", "\0"):
				self.assertNotIn(forbidden, result)
