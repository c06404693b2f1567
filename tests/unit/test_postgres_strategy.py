from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

import pytest

from minorm.errors import MappingError, MetadataError
from minorm.mapping import MappingRegistry, column, one_to_many, primary_key
from minorm.strategies import MappingStrategy, PostgresMappingStrategy

registry = MappingRegistry()


@registry.entity(name="Animals")
@dataclass
class Animal:
    animalId: Optional[int] = primary_key()
    fur: bool = True
    eyeColor: str = "blue"
    numOfLegs: int = 4
    weight: float = 212.07
    price: Decimal = Decimal("4128.13")
    grade: str = column(kind="CHAR", default="A")


@registry.entity(name="Keepers")
@dataclass
class Keeper:
    id: Optional[int] = primary_key()
    name: str = column(length=120, default="", order="ASC")
    rank: int = column(default=0, order="DESC")
    animals: List[Animal] = one_to_many(foreign_key="keeper_id")


@registry.entity
@dataclass
class Note:
    text: str = ""


@pytest.fixture
def strategy() -> PostgresMappingStrategy:
    return PostgresMappingStrategy(default_string_length=50)


def test_strategy_satisfies_protocol(strategy: PostgresMappingStrategy) -> None:
    assert isinstance(strategy, MappingStrategy)
    assert strategy.name == "postgres"


def test_create_table(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.create_table(registry.describe(Animal))

    assert sql == (
        "CREATE TABLE Animals (\n"
        "  animalId serial,\n"
        "  fur BOOL,\n"
        "  eyeColor VARCHAR(50),\n"
        "  numOfLegs INTEGER,\n"
        "  weight DECIMAL(10,2),\n"
        "  price DECIMAL(10,2),\n"
        "  grade CHAR(1),\n"
        "  primary key (animalId)\n"
        ");"
    )


def test_create_table_appends_foreign_key_columns(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.create_table(registry.describe(Animal), registry.foreign_key_columns(Animal))

    assert "  grade CHAR(1),\n  keeper_id INTEGER,\n  primary key (animalId)\n);" in sql


def test_create_table_uses_declared_length(strategy: PostgresMappingStrategy) -> None:
    assert "  name VARCHAR(120)," in strategy.create_table(registry.describe(Keeper))


def test_create_table_without_primary_key(strategy: PostgresMappingStrategy) -> None:
    assert strategy.create_table(registry.describe(Note)) == (
        "CREATE TABLE Note (\n  text VARCHAR(50)\n);"
    )


def test_build_schema_concatenates_statements(strategy: PostgresMappingStrategy) -> None:
    descriptors = registry.descriptors()
    sql = strategy.build_schema(descriptors, registry.foreign_key_map())

    assert sql == "".join(
        strategy.create_table(d, registry.foreign_key_columns(d.record_type)) for d in descriptors
    )
    assert sql.count("CREATE TABLE") == 3


def test_insert_renders_literals_in_field_order(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.insert(registry.describe(Animal), Animal(animalId=12345))

    assert sql == (
        "INSERT INTO Animals VALUES "
        "(default, true, 'blue', 4, 212.07, 4128.13, 'A') RETURNING *;"
    )


def test_insert_escapes_quotes_and_renders_null(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.insert(registry.describe(Animal), Animal(eyeColor="o'brien", weight=None))

    assert "'o''brien'" in sql
    assert ", NULL," in sql


def test_insert_with_foreign_keys_names_columns(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.insert(registry.describe(Animal), Animal(fur=False), {"keeper_id": 3})

    assert sql == (
        "INSERT INTO Animals (animalId, fur, eyeColor, numOfLegs, weight, price, grade, keeper_id) "
        "VALUES (default, false, 'blue', 4, 212.07, 4128.13, 'A', 3) RETURNING *;"
    )


def test_insert_rejects_foreign_record_type(strategy: PostgresMappingStrategy) -> None:
    with pytest.raises(MappingError):
        strategy.insert(registry.describe(Animal), Note())


def test_get(strategy: PostgresMappingStrategy) -> None:
    assert strategy.get(registry.describe(Animal), 7) == "SELECT * FROM Animals WHERE animalId = 7;"


def test_get_without_primary_key_raises(strategy: PostgresMappingStrategy) -> None:
    with pytest.raises(MetadataError):
        strategy.get(registry.describe(Note), 1)


def test_get_all_without_order(strategy: PostgresMappingStrategy) -> None:
    assert strategy.get_all(registry.describe(Animal)) == "SELECT * FROM Animals;"


def test_get_all_with_order(strategy: PostgresMappingStrategy) -> None:
    assert (
        strategy.get_all(registry.describe(Keeper))
        == "SELECT * FROM Keepers ORDER BY name ASC, rank DESC;"
    )


def test_update(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.update(registry.describe(Keeper), Keeper(id=5, name="Sam", rank=2))

    assert sql == "UPDATE Keepers SET name = 'Sam', rank = 2 WHERE id = 5 RETURNING *;"


def test_update_with_foreign_keys(strategy: PostgresMappingStrategy) -> None:
    sql = strategy.update(registry.describe(Animal), Animal(animalId=1, fur=False), {"keeper_id": 9})

    assert sql.endswith(", grade = 'A', keeper_id = 9 WHERE animalId = 1 RETURNING *;")


def test_update_without_primary_key_value_raises(strategy: PostgresMappingStrategy) -> None:
    with pytest.raises(MappingError, match="not set"):
        strategy.update(registry.describe(Keeper), Keeper(name="Sam"))


def test_delete(strategy: PostgresMappingStrategy) -> None:
    assert (
        strategy.delete(registry.describe(Keeper), 5)
        == "DELETE FROM Keepers WHERE id = 5 RETURNING *;"
    )


def test_non_integer_key_raises(strategy: PostgresMappingStrategy) -> None:
    with pytest.raises(MappingError):
        strategy.delete(registry.describe(Keeper), "five")


def test_drop_table(strategy: PostgresMappingStrategy) -> None:
    assert strategy.drop_table(registry.describe(Keeper)) == "DROP TABLE IF EXISTS Keepers;"


def test_default_string_length_comes_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("DEFAULT_STRING_LENGTH", "64")

    strategy = PostgresMappingStrategy()

    assert "  text VARCHAR(64)\n" in strategy.create_table(registry.describe(Note))


def test_minimal_animals_statements(strategy: PostgresMappingStrategy) -> None:
    local = MappingRegistry()

    @local.entity(name="Animals")
    @dataclass
    class Creature:
        id: Optional[int] = primary_key()
        fur: bool = True
        eyeColor: str = column(length=50, default="blue")

    descriptor = local.describe(Creature)

    assert strategy.insert(descriptor, Creature()) == (
        "INSERT INTO Animals VALUES (default, true, 'blue') RETURNING *;"
    )
    assert strategy.create_table(descriptor) == (
        "CREATE TABLE Animals (\n"
        "  id serial,\n"
        "  fur BOOL,\n"
        "  eyeColor VARCHAR(50),\n"
        "  primary key (id)\n"
        ");"
    )


def test_text_in_numeric_field_is_rejected(strategy: PostgresMappingStrategy) -> None:
    animal = Animal(weight="0); DROP TABLE Animals; --")

    with pytest.raises(MappingError, match="weight") as excinfo:
        strategy.insert(registry.describe(Animal), animal)

    assert excinfo.value.record_type is Animal
    assert excinfo.value.operation == "insert"


@pytest.mark.parametrize("weight", [True, float("nan"), float("inf"), Decimal("NaN"), "1.5"])
def test_non_finite_or_non_numeric_values_are_rejected_on_update(
    strategy: PostgresMappingStrategy, weight
) -> None:
    with pytest.raises(MappingError) as excinfo:
        strategy.update(registry.describe(Animal), Animal(animalId=1, weight=weight))

    assert excinfo.value.operation == "update"


def test_non_integer_in_integer_field_raises_mapping_error(
    strategy: PostgresMappingStrategy,
) -> None:
    with pytest.raises(MappingError, match="numOfLegs"):
        strategy.insert(registry.describe(Animal), Animal(numOfLegs="four"))

    with pytest.raises(MappingError):
        strategy.insert(registry.describe(Animal), Animal(numOfLegs=2.5))


def test_numeric_fields_accept_matching_numbers(strategy: PostgresMappingStrategy) -> None:
    animal = Animal(numOfLegs=6.0, weight=3, price=Decimal("1.5"))

    sql = strategy.insert(registry.describe(Animal), animal)

    assert sql == (
        "INSERT INTO Animals VALUES (default, true, 'blue', 6, 3, 1.5, 'A') RETURNING *;"
    )


def test_fractional_key_is_rejected(strategy: PostgresMappingStrategy) -> None:
    with pytest.raises(MappingError):
        strategy.get(registry.describe(Keeper), 1.7)
