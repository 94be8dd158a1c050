from __future__ import annotations

import os
import tempfile
import unittest

from interjection.content import default_local_content
from interjection.content import load_local_content
from interjection.prompts import is_pass_reply
from interjection.prompts import looks_like_prompt_echo
from interjection.prompts import mention_prompt
from interjection.prompts import AI_COMMENT_PROMPT


def _repo_root() -> str:
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class LocalContentTests(unittest.TestCase):
    def test_bundled_file_loads_cleanly(self):
        content, warning = load_local_content(os.path.join(_repo_root(), "config", "interjections.yml"))
        self.assertIsNone(warning)
        self.assertTrue(content.mst3k_quotes)
        self.assertTrue(content.pondering_lines)
        for template in content.memory_templates:
            self.assertIn("{content}", template)

    def test_missing_file_falls_back_with_warning(self):
        content, warning = load_local_content("/nonexistent/interjections.yml")
        self.assertIn("not found", warning)
        self.assertEqual(content.mst3k_quotes, default_local_content().mst3k_quotes)

    def test_malformed_yaml_falls_back(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "bad.yml")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("mst3k_quotes: [unclosed\n")
            content, warning = load_local_content(path)
        self.assertIn("Failed to read", warning)
        self.assertTrue(content.pondering_lines)

    def test_partial_file_keeps_defaults_for_missing_sections(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "partial.yml")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("version: custom\nmst3k_quotes:\n  - Only this one\n  - ''\n")
            content, warning = load_local_content(path)
        self.assertIsNone(warning)
        self.assertEqual(content.version, "custom")
        self.assertEqual(content.mst3k_quotes, ["Only this one"])
        self.assertEqual(content.pondering_lines, default_local_content().pondering_lines)


class PromptHelperTests(unittest.TestCase):
    def test_pass_detection(self):
        for text in ("pass", "PASS", " Pass. ", "*pass*"):
            self.assertTrue(is_pass_reply(text))
        for text in ("passing thought", "", None, "I'll pass on that"):
            self.assertFalse(is_pass_reply(text))

    def test_prompt_echo_detection(self):
        self.assertTrue(looks_like_prompt_echo(AI_COMMENT_PROMPT, AI_COMMENT_PROMPT))
        self.assertTrue(looks_like_prompt_echo("sure {author}", AI_COMMENT_PROMPT))
        self.assertFalse(looks_like_prompt_echo("Honestly that movie was great.", AI_COMMENT_PROMPT))

    def test_mention_prompt_fills_author(self):
        prompt = mention_prompt("alice", "hi bot")
        self.assertIn("alice: hi bot", prompt)
        self.assertNotIn("{author}", prompt)


if __name__ == "__main__":
    unittest.main()
