from jademark.cache import TranslationCache
from jademark.hashing import content_hash, normalise_content


class TestContentHash:

    def test_whitespace_runs_collapse(self):
        assert content_hash("hello   world") == content_hash("hello world")
        assert content_hash("  hello\n\tworld \r\n") == content_hash("hello world")

    def test_different_text_differs(self):
        assert content_hash("hello world") != content_hash("hello words")

    def test_empty_text_has_seed_hash(self):
        assert content_hash("") == format(5381, "x")

    def test_known_value(self):
        # djb2: 5381 * 33 + ord("a")
        assert content_hash("a") == format(5381 * 33 + 97, "x")

    def test_non_bmp_characters_hash_by_code_unit(self):
        assert content_hash("😀") == content_hash(" 😀 ")
        assert content_hash("😀") != content_hash("😁")

    def test_normalise_content(self):
        assert normalise_content(" a \n\n b ") == "a b"


class TestTranslationCache:

    def test_put_and_get(self):
        cache = TranslationCache()
        cache.put("Hello", "Hola")
        assert cache.get("Hello") == "Hola"
        assert "Hello" in cache
        assert len(cache) == 1

    def test_miss_returns_none(self):
        assert TranslationCache().get("missing") is None

    def test_clear_drops_everything(self):
        cache = TranslationCache()
        cache.put("a", "b")
        cache.put("c", "d")
        cache.clear()
        assert len(cache) == 0
        assert "a" not in cache

    def test_put_overwrites(self):
        cache = TranslationCache()
        cache.put("a", "b")
        cache.put("a", "c")
        assert cache.get("a") == "c"
