"""PromptLibrary unit tests."""

from __future__ import annotations

from analyzer.prompts.prompt_library import BUILTIN_TEMPLATES, PromptLibrary
from analyzer.services.storage_service import StorageService


def test_builtins_are_fixed_and_default_is_first():
    library = PromptLibrary()

    builtins = library.list_builtins()
    assert [t.id for t in builtins] == [
        "default",
        "accessibility",
        "mobile-ux",
        "onboarding",
        "conversion",
        "design-system",
    ]
    assert library.default_text() == builtins[0].text
    assert library.default_text().startswith("Analyze these UI screenshots in sequence.")


def test_save_allows_duplicate_names():
    library = PromptLibrary()
    first = library.save("Login review", "Check the login screens")
    second = library.save("Login review", "Another take")

    assert first.id != second.id
    assert [p.name for p in library.list_custom()] == ["Login review", "Login review"]


def test_delete_custom_and_refuse_builtin():
    library = PromptLibrary()
    saved = library.save("Temp", "text")

    assert library.delete("default") is False
    assert library.delete(saved.id) is True
    assert library.delete(saved.id) is False
    assert library.list_custom() == []
    assert len(library.list_builtins()) == len(BUILTIN_TEMPLATES)


def test_get_text_resolves_both_kinds():
    library = PromptLibrary()
    saved = library.save("Mine", "custom text")

    assert library.get_text("accessibility").startswith("Analyze these UI screenshots for accessibility")
    assert library.get_text(saved.id) == "custom text"
    assert library.get_text("nope") is None


def test_custom_prompts_persist(tmp_path):
    storage = StorageService(tmp_path)
    library = PromptLibrary(storage)
    library.save("Checkout", "Describe the checkout")

    reloaded = PromptLibrary(storage)

    assert [(p.name, p.text) for p in reloaded.list_custom()] == [("Checkout", "Describe the checkout")]


def test_corrupt_custom_store_starts_empty(tmp_path):
    (tmp_path / "prompts.json").write_text("{not json", encoding="utf-8")

    library = PromptLibrary(StorageService(tmp_path))

    assert library.list_custom() == []


def test_working_prompt_save_and_reset(tmp_path):
    library = PromptLibrary(StorageService(tmp_path))
    assert library.saved_prompt() == library.default_text()

    assert library.remember_prompt("Only describe buttons")
    assert PromptLibrary(StorageService(tmp_path)).saved_prompt() == "Only describe buttons"

    assert library.reset_prompt() == library.default_text()
    assert library.saved_prompt() == library.default_text()
