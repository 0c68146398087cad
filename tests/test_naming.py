from __future__ import annotations

import pytest

from specbind.naming import camel_case, constant_case, kebab_case, pascal_case, snake_case, split_words


@pytest.mark.parametrize(
    "value, words",
    [
        ("listPets", ["list", "Pets"]),
        ("pet-store", ["pet", "store"]),
        ("HTTPServer", ["HTTP", "Server"]),
        ("get_users_id", ["get", "users", "id"]),
        ("", []),
    ],
)
def test_split_words(value: str, words: list) -> None:
    assert split_words(value) == words


def test_case_conversions() -> None:
    assert camel_case("show-pet-by-id") == "showPetById"
    assert pascal_case("showPetById") == "ShowPetById"
    assert snake_case("showPetById") == "show_pet_by_id"
    assert kebab_case("Pet Store") == "pet-store"
    assert constant_case("pet-store") == "PET_STORE"
    assert camel_case("") == ""
