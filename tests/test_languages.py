from snippetvault.domain.languages import LANGUAGE_LABELS, Language, LanguageTag


def test_registry_has_label_for_every_member():
    assert set(LANGUAGE_LABELS) == set(Language)
    assert LanguageTag.parse("csharp").label == "C#"
    assert LanguageTag.parse("cpp").label == "C++"


def test_unknown_language_displays_fallback_but_stores_raw():
    tag = LanguageTag.parse("Haskell")
    assert tag.value == "haskell"
    assert str(tag) == "haskell"
    assert tag.is_known is False
    assert tag.kind is Language.OTHER
    assert tag.label == "Other"
    assert tag.css_class == "language-default"


def test_known_language_css_class():
    assert LanguageTag.parse("go").css_class == "language-go"
    assert LanguageTag.parse("other").css_class == "language-other"


def test_missing_language_uses_default():
    assert LanguageTag.parse(None).value == "other"
    assert LanguageTag.parse("  ", default="Rust").value == "rust"


def test_coerce_filter_values():
    assert LanguageTag.coerce(None) is None
    assert LanguageTag.coerce("") is None
    assert LanguageTag.coerce("TypeScript") == LanguageTag("typescript")
    assert LanguageTag.coerce(Language.GO) == LanguageTag("go")
    assert LanguageTag.coerce("Elixir") == LanguageTag("elixir")
    tag = LanguageTag("rust")
    assert LanguageTag.coerce(tag) is tag
