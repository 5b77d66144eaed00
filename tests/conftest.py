"""
Pytest configuration and shared fixtures.

Provides a scripted translation client so pipeline tests never reach a
real provider.
"""

import sys
import threading
import time
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from babelblocks.errors import ProviderError
from babelblocks.providers import SEGMENT_TAG_PATTERN, TranslationClient


def french(text):
    return f"fr:{text}"


class ScriptedClient(TranslationClient):
    """Fake client: explicit mapping first, then the transform; fails on request."""

    name = "scripted"

    def __init__(self, mapping=None, fail_on=(), transform=french, delays=None, reply=None):
        super().__init__()
        self.mapping = dict(mapping or {})
        self.fail_on = set(fail_on)
        self.transform = transform
        self.delays = dict(delays or {})
        self.reply = reply
        self.calls = []
        self._lock = threading.Lock()

    def _complete(self, instruction, text):
        with self._lock:
            self.calls.append(text)
        if text in self.delays:
            time.sleep(self.delays[text])
        if self.reply is not None:
            return self.reply
        if text in self.fail_on:
            raise ProviderError(f"refused '{text}'")
        if SEGMENT_TAG_PATTERN.search(text):
            return SEGMENT_TAG_PATTERN.sub(
                lambda match: (
                    f'<seg id="{match.group("id")}">'
                    f'{self._translate_one(match.group("content"))}</seg>'
                ),
                text,
            )
        return self._translate_one(text)

    def _translate_one(self, text):
        if text in self.fail_on:
            raise ProviderError(f"refused '{text}'")
        return self.mapping.get(text, self.transform(text))


@pytest.fixture
def scripted_client():
    """Factory fixture building scripted clients."""
    return ScriptedClient


@pytest.fixture
def block_document():
    """A block document mixing translatable and opaque blocks."""
    return (
        '<!-- wp:heading {"level":2} -->\n'
        '<h2 class="wp-block-heading">Welcome aboard</h2>\n'
        "<!-- /wp:heading -->\n\n"
        "<!-- wp:code -->\n"
        '<pre class="wp-block-code"><code>print("hello world")</code></pre>\n'
        "<!-- /wp:code -->\n\n"
        '<!-- wp:group {"layout":{"type":"constrained"}} -->\n'
        '<div class="wp-block-group"><!-- wp:paragraph -->\n'
        "<p>Nested <strong>bold</strong> words &amp; more</p>\n"
        "<!-- /wp:paragraph --></div>\n"
        "<!-- /wp:group -->\n\n"
        '<!-- wp:button {"text":"Read more","url":"https://example.com/read-more"} /-->\n\n'
        "<!-- wp:spacer {\"height\":\"40px\"} -->\n"
        '<div style="height:40px" aria-hidden="true" class="wp-block-spacer"></div>\n'
        "<!-- /wp:spacer -->"
    )
