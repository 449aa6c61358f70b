from enum import Enum
from typing import Any, Optional

import pytest
from graphql import GraphQLSchema, GraphQLScalarType, print_schema

from tests.conftest import execute, field_type, introspect, type_signature
from typegraph import (
    ID,
    BuildSchemaConfig,
    SchemaGenerationError,
    arg,
    args,
    args_type,
    build_schema,
    field,
    input_type,
    interface_type,
    mutation,
    object_type,
    query,
    register_enum_type,
)
from typegraph.decorators import FieldDescriptor, ResolverMethod
from typegraph.metadata.definitions import OperationKind, TypeKind
from typegraph.metadata.registry import MetadataRegistry


class Difficulty(Enum):
    """How hard a recipe is to cook."""

    EASY = "easy"
    HARD = "hard"


def test_field_registers_before_class_decorator(registry: MetadataRegistry) -> None:
    class Recipe:
        title = field(str)

    assert registry.get_type(Recipe) is None
    assert [f.name for f in registry.fields_of(Recipe)] == ["title"]

    object_type(Recipe)

    assert registry.get_type(Recipe).kind == TypeKind.OBJECT  # type: ignore[union-attr]


def test_bare_and_called_decorators(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        pass

    @object_type("Dish", description="Something to eat")
    class Meal:
        pass

    @input_type(name="NewRecipe")
    class RecipeInput:
        pass

    @args_type()
    class PageArgs:
        pass

    assert (registry.get_type(Recipe).name, registry.get_type(Recipe).kind) == ("Recipe", TypeKind.OBJECT)  # type: ignore[union-attr]
    assert registry.get_type(Meal).name == "Dish"  # type: ignore[union-attr]
    assert registry.get_type(Meal).description == "Something to eat"  # type: ignore[union-attr]
    assert registry.get_type(RecipeInput).name == "NewRecipe"  # type: ignore[union-attr]
    assert registry.get_type(PageArgs).kind == TypeKind.ARGS  # type: ignore[union-attr]


def test_class_docstring_becomes_description(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        """A dish and how to cook it."""

    @object_type
    class Soup(Recipe):
        pass

    assert registry.get_type(Recipe).description == "A dish and how to cook it."  # type: ignore[union-attr]
    assert registry.get_type(Soup).description is None  # type: ignore[union-attr]


def test_descriptor_reads_instance_values_and_defaults(registry: MetadataRegistry) -> None:
    @input_type
    class RecipeInput:
        title = field(str)
        servings = field(int, default=2)

    recipe_input = RecipeInput()

    assert isinstance(RecipeInput.title, FieldDescriptor)
    assert recipe_input.title is None
    assert recipe_input.servings == 2

    recipe_input.title = "Soup"
    assert recipe_input.title == "Soup"


def test_types_inferred_from_annotations(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        title: str = field()
        rating: Optional[float] = field()
        tags: list[str] = field()
        notes: list[str | None] | None = field()
        related: "list[Recipe]" = field()
        kind: Difficulty = field()

        @field()
        def summary(self) -> str:
            return self.title

    register_enum_type(Difficulty)

    class RecipeResolver:
        @query()
        def recipe(self) -> Recipe:
            return Recipe()

    schema = build_schema([RecipeResolver])
    recipe = introspect(schema, "Recipe")

    assert {name: type_signature(field_type(recipe, name)) for name in [f["name"] for f in recipe["fields"]]} == {
        "title": "String!",
        "rating": "Float",
        "tags": "[String!]!",
        "notes": "[String]",
        "related": "[Recipe!]!",
        "kind": "Difficulty!",
        "summary": "String!",
    }
    assert type_signature(field_type(introspect(schema, "Query"), "recipe")) == "Recipe!"


def test_missing_type_is_reported(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        title = field()

    class RecipeResolver:
        @query(Recipe)
        def recipe(self) -> Any:
            return Recipe()

    with pytest.raises(SchemaGenerationError) as exc_info:
        build_schema([RecipeResolver])

    [problem] = exc_info.value.details
    assert "Field 'title' of" in problem.message
    assert "neither an explicit type nor a type annotation" in problem.message


def test_field_name_differs_from_attribute(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        cooking_time = field(int, name="cookingTime")

    class RecipeResolver:
        @query(Recipe)
        def recipe(self) -> Any:
            recipe = Recipe()
            recipe.cooking_time = 30
            return recipe

        @query(Recipe, name="recipeMapping")
        def recipe_mapping(self) -> Any:
            return {"cooking_time": 45, "__typename": "Recipe"}

    schema = build_schema([RecipeResolver])
    result = execute(schema, "{ recipe { cookingTime } recipeMapping { cookingTime } }")

    assert result.errors is None
    assert result.data == {"recipe": {"cookingTime": 30}, "recipeMapping": {"cookingTime": 45}}


def test_resolver_backed_fields(registry: MetadataRegistry) -> None:
    @args_type
    class PageArgs:
        skip = field(int, default=0)
        take = field(int, default=2)

    @object_type
    class Recipe:
        title = field(str)
        ingredients = field([str])

        @field(str, arguments=[arg("upper", bool, default=False)])
        def display_title(self, upper: bool) -> str:
            """Title ready to be displayed."""
            return self.title.upper() if upper else self.title

        @field([str], arguments=[args(PageArgs)])
        def first_ingredients(self, page: PageArgs) -> list[str]:
            return self.ingredients[page.skip : page.skip + page.take]

    class RecipeResolver:
        @query(Recipe)
        def recipe(self) -> Recipe:
            recipe = Recipe()
            recipe.title = "Soup"
            recipe.ingredients = ["water", "salt", "leek", "potato"]
            return recipe

    schema = build_schema([RecipeResolver])
    result = execute(
        schema,
        "{ recipe { display_title loud: display_title(upper: true) first_ingredients(skip: 1) } }",
    )

    assert result.errors is None
    assert result.data == {
        "recipe": {"display_title": "Soup", "loud": "SOUP", "first_ingredients": ["salt", "leek"]},
    }
    display_title = schema.get_type("Recipe").fields["display_title"]  # type: ignore[union-attr]
    assert display_title.description == "Title ready to be displayed."


def test_resolver_field_on_interface_is_inherited(registry: MetadataRegistry) -> None:
    @interface_type
    class Named:
        first = field(str)
        last = field(str)

        @field(str)
        def full_name(self) -> str:
            return f"{self.first} {self.last}"

    @object_type
    class Author(Named):
        pass

    class AuthorResolver:
        @query(Named)
        def author(self) -> Any:
            author = Author()
            author.first, author.last = "Ada", "Lovelace"
            return author

    result = execute(build_schema([AuthorResolver]), "{ author { full_name } }")

    assert result.data == {"author": {"full_name": "Ada Lovelace"}}


def test_input_and_args_types_cannot_have_resolvers(registry: MetadataRegistry) -> None:
    @input_type
    class RecipeInput:
        @field(str)
        def title(self) -> str:
            return ""

    class RecipeResolver:
        @mutation(bool, arguments=[arg("recipe", RecipeInput)])
        def add(self, recipe: Any) -> bool:
            return True

        @query(bool)
        def ready(self) -> bool:
            return True

    with pytest.raises(SchemaGenerationError, match="cannot have a resolver or arguments"):
        build_schema([RecipeResolver])


def test_enums(registry: MetadataRegistry) -> None:
    register_enum_type(Difficulty, description="How hard a recipe is")

    @object_type
    class Dish:
        difficulty = field(Difficulty)

    class DishResolver:
        @query([Dish], arguments=[arg("difficulty", Difficulty, default=Difficulty.EASY)])
        def dishes(self, difficulty: Difficulty) -> list[Any]:
            dish = Dish()
            dish.difficulty = difficulty
            return [dish]

    schema = build_schema([DishResolver])

    assert "enum Difficulty" in print_schema(schema)
    assert schema.get_type("Difficulty").description == "How hard a recipe is"  # type: ignore[union-attr]
    assert execute(schema, "{ dishes { difficulty } }").data == {"dishes": [{"difficulty": "EASY"}]}
    assert execute(schema, "{ dishes(difficulty: HARD) { difficulty } }").data == {
        "dishes": [{"difficulty": "HARD"}]
    }


def test_query_and_mutation_methods(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        title = field(str)

    @input_type
    class RecipeInput:
        title = field(str)

    class RecipeResolver:
        def __init__(self) -> None:
            self.recipes: list[Recipe] = []

        @query([Recipe], description="Every recipe")
        def all_recipes(self) -> list[Recipe]:
            return self.recipes

        @mutation(Recipe, arguments=[arg("input", RecipeInput)])
        def add_recipe(self, recipe_input: RecipeInput) -> Recipe:
            recipe = Recipe()
            recipe.title = recipe_input.title
            self.recipes.append(recipe)
            return recipe

        @query(int, deprecation_reason="Use all_recipes")
        def count(self) -> int:
            return len(self.recipes)

    assert isinstance(RecipeResolver.__dict__["all_recipes"], ResolverMethod)
    assert RecipeResolver().all_recipes() == []
    [count] = [d for d in registry.resolvers_of(RecipeResolver) if d.name == "count"]
    assert count.operation == OperationKind.QUERY

    schema = build_schema([RecipeResolver])
    result = execute(schema, 'mutation { add_recipe(input: {title: "Soup"}) { title } }')
    assert result.data == {"add_recipe": {"title": "Soup"}}

    # the resolver instance lives as long as the schema
    result = execute(schema, "{ all_recipes { title } count }")
    assert result.data == {"all_recipes": [{"title": "Soup"}], "count": 1}

    query_type = schema.query_type
    assert query_type is not None
    assert query_type.fields["all_recipes"].description == "Every recipe"
    assert query_type.fields["count"].deprecation_reason == "Use all_recipes"


def test_resolver_methods_are_inherited(registry: MetadataRegistry) -> None:
    class BaseResolver:
        @query(str)
        def version(self) -> str:
            return "1"

    class RecipeResolver(BaseResolver):
        @query(str)
        def greeting(self) -> str:
            return "hello"

    schema = build_schema([RecipeResolver])

    assert execute(schema, "{ version greeting }").data == {"version": "1", "greeting": "hello"}


def test_custom_scalars(registry: MetadataRegistry) -> None:
    class Money:
        def __init__(self, cents: int) -> None:
            self.cents = cents

    money_scalar = GraphQLScalarType("Money", serialize=lambda value: f"{value.cents / 100:.2f}")

    @object_type
    class Recipe:
        price: Money = field()
        code = field(ID)

    class RecipeResolver:
        @query(Recipe)
        def recipe(self) -> Any:
            recipe = Recipe()
            recipe.price, recipe.code = Money(1250), 7
            return recipe

    schema = build_schema([RecipeResolver], config=BuildSchemaConfig(scalars_map={Money: money_scalar}))

    assert execute(schema, "{ recipe { price code } }").data == {"recipe": {"price": "12.50", "code": "7"}}


def test_nullable_by_default(registry: MetadataRegistry) -> None:
    @object_type
    class Recipe:
        title = field(str)
        tags = field([str])
        id = field(ID, nullable=False)

    class RecipeResolver:
        @query(Recipe)
        def recipe(self) -> Any:
            return None

    schema: GraphQLSchema = build_schema([RecipeResolver], config=BuildSchemaConfig(nullable_by_default=True))
    recipe = introspect(schema, "Recipe")

    assert type_signature(field_type(recipe, "title")) == "String"
    assert type_signature(field_type(recipe, "tags")) == "[String!]"
    assert type_signature(field_type(recipe, "id")) == "ID!"
    assert execute(schema, "{ recipe { title } }").data == {"recipe": None}


def test_object_type_inheriting_interface_class_and_explicit_implements(registry: MetadataRegistry) -> None:
    @interface_type
    class Node:
        id = field(ID)

    @interface_type
    class Named:
        name = field(str)

    @object_type(implements=[lambda: Named])
    class Recipe(Node):
        title = field(str)

    class RecipeResolver:
        @query([Node])
        def nodes(self) -> list[Any]:
            return []

    schema = build_schema([RecipeResolver])
    recipe = introspect(schema, "Recipe")

    assert [i["name"] for i in recipe["interfaces"]] == ["Node", "Named"]
    assert [f["name"] for f in recipe["fields"]] == ["id", "name", "title"]


def test_unapplied_resolver_method(registry: MetadataRegistry) -> None:
    class RecipeResolver:
        pass

    with pytest.raises(TypeError, match="must decorate a method"):
        query(int).__set_name__(RecipeResolver, "count")

    with pytest.raises(TypeError, match="never applied to a method"):
        ResolverMethod(OperationKind.QUERY, int).__get__(object())
