from __future__ import annotations

import json
import time
import unittest
from unittest import IsolatedAsyncioTestCase, mock

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from meal_planner.config import Settings
from meal_planner.errors import (
    GenerationTimeoutError,
    MalformedResponseError,
    NotFoundError,
    UpstreamServiceError,
)
from meal_planner.models import Base, Household, HouseholdGroup, Meal
from meal_planner.schemas import GroupDemographics, MealGenerationRequest
from meal_planner.services import meal_generation
from meal_planner.services.meal_generation import (
    build_meal_prompt,
    collect_dietary_restrictions,
    generate_meals,
    parse_generated_meals,
)


SAMPLE_MEALS = [
    {
        "title": "Veggie Chili",
        "description": "Hearty bean chili",
        "category": "whole_house",
        "prep_time_minutes": 15,
        "cook_time_minutes": 40,
        "serving_size_base": 6,
        "ingredients": [
            {"name": "Kidney beans", "quantity": 2, "unit": "can", "category": "pantry"},
            {"name": "Onion", "quantity": 1, "unit": "each", "category": "produce"},
        ],
        "instructions": ["Chop the onion", "Simmer everything"],
        "dietary_tags": ["vegetarian"],
    },
    {
        "title": "Yogurt Parfait",
        "description": "Quick breakfast",
        "category": "breakfast",
        "prep_time_minutes": 5,
        "cook_time_minutes": 0,
        "serving_size_base": 4,
        "ingredients": [
            {"name": "Greek yogurt", "quantity": 500, "unit": "g", "category": "dairy"},
            {"name": "Granola", "quantity": 1, "unit": "cup", "category": "cereal"},
        ],
        "instructions": ["Layer yogurt and granola"],
        "dietary_tags": ["vegetarian"],
    },
]


class PromptAndParsingTest(unittest.TestCase):
    def test_restrictions_keep_duplicates(self):
        groups = [
            GroupDemographics(id="a", dietary_restrictions=["vegetarian", "nut-free"]),
            GroupDemographics(id="b", dietary_restrictions=["nut-free"]),
            GroupDemographics(id="c", dietary_restrictions=[]),
        ]
        self.assertEqual(
            collect_dietary_restrictions(groups),
            ["vegetarian", "nut-free", "nut-free"],
        )

    def test_prompt_embeds_constraints(self):
        prompt = build_meal_prompt(
            meal_count=3,
            total_servings=5.5,
            meal_categories=["whole_house", "breakfast"],
            dietary_restrictions=["vegetarian"],
            exclude_ingredients=["mushrooms"],
            preferences=["quick weeknight"],
        )
        self.assertIn("Generate 3 family meal ideas", prompt)
        self.assertIn("- Total servings needed: 6", prompt)
        self.assertIn("- Meal categories: whole_house, breakfast", prompt)
        self.assertIn("- Dietary restrictions: vegetarian", prompt)
        self.assertIn("- Exclude ingredients: mushrooms", prompt)
        self.assertIn("- Preferences: quick weeknight", prompt)
        self.assertIn("dietary_tags", prompt)

    def test_prompt_omits_empty_optional_lines(self):
        prompt = build_meal_prompt(
            meal_count=5,
            total_servings=4,
            meal_categories=["backup"],
            dietary_restrictions=[],
        )
        self.assertNotIn("Exclude ingredients", prompt)
        self.assertNotIn("Preferences", prompt)
        self.assertIn("- Total servings needed: 4", prompt)

    def test_parses_bare_array(self):
        meals = parse_generated_meals(json.dumps(SAMPLE_MEALS))
        self.assertEqual([meal.title for meal in meals], ["Veggie Chili", "Yogurt Parfait"])
        self.assertEqual(meals[1].ingredients[1].category, "other")

    def test_parses_fenced_object(self):
        text = "Here you go:\n```json\n" + json.dumps({"meals": SAMPLE_MEALS[:1]}) + "\n```"
        meals = parse_generated_meals(text)
        self.assertEqual(len(meals), 1)
        self.assertEqual(meals[0].serving_size_base, 6)

    def test_rejects_non_json(self):
        with self.assertRaises(MalformedResponseError) as ctx:
            parse_generated_meals("Sorry, I can't help with that.")
        self.assertEqual(ctx.exception.message, "Invalid response format from AI service")

    def test_rejects_wrong_shape(self):
        with self.assertRaises(MalformedResponseError):
            parse_generated_meals(json.dumps({"title": "Lonely meal"}))
        with self.assertRaises(MalformedResponseError):
            parse_generated_meals(json.dumps(["just a string"]))
        with self.assertRaises(MalformedResponseError):
            parse_generated_meals(json.dumps([{"description": "no title"}]))


class MealGenerationServiceTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)
        async with self.Session() as session:
            session.add_all(
                [
                    Household(id="house-1", name="The Parkers", created_by="user-1"),
                    Household(id="house-2", name="The Smiths", created_by="user-2"),
                ]
            )
            await session.flush()
            session.add_all(
                [
                    HouseholdGroup(
                        id="grown-ups",
                        household_id="house-1",
                        name="Grown-ups",
                        adult_count=2,
                        dietary_restrictions=["vegetarian"],
                    ),
                    HouseholdGroup(
                        id="kids",
                        household_id="house-1",
                        name="Kids",
                        child_count=2,
                        toddler_count=1,
                        dietary_restrictions=["nut-free"],
                    ),
                    HouseholdGroup(
                        id="neighbours",
                        household_id="house-2",
                        name="Neighbours",
                        adult_count=10,
                        dietary_restrictions=["keto"],
                    ),
                ]
            )
            await session.commit()
        self.settings = Settings(openai_api_key="sk-test", openai_meal_model="gpt-test")
        patcher = mock.patch.object(meal_generation, "get_settings", return_value=self.settings)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def asyncTearDown(self):
        await self.engine.dispose()

    def _request(self, **overrides) -> MealGenerationRequest:
        payload = {
            "householdId": "house-1",
            "groupIds": ["grown-ups", "kids", "neighbours", "missing"],
            "mealCategories": ["whole_house", "breakfast"],
            "excludeIngredients": ["peanuts"],
        }
        payload.update(overrides)
        return MealGenerationRequest.model_validate(payload)

    async def _count_meals(self) -> int:
        async with self.Session() as session:
            result = await session.execute(select(func.count()).select_from(Meal))
            return int(result.scalar_one())

    async def test_generates_and_persists_meals(self):
        calls = []

        def fake_complete(**kwargs):
            calls.append(kwargs)
            return json.dumps(SAMPLE_MEALS)

        async with self.Session() as session:
            meals = await generate_meals(session, self._request(mealCount=2), user_id="user-1", complete=fake_complete)

        self.assertEqual(len(meals), 2)
        self.assertTrue(all(meal.ai_generated for meal in meals))
        self.assertTrue(all(meal.source == "openai" for meal in meals))
        self.assertTrue(all(meal.id for meal in meals))
        self.assertEqual(meals[0].ingredients[0]["name"], "Kidney beans")
        self.assertEqual(await self._count_meals(), 2)

        self.assertEqual(len(calls), 1)
        call = calls[0]
        self.assertEqual(call["model"], "gpt-test")
        self.assertEqual(call["temperature"], 0.8)
        prompt = call["user_prompt"]
        self.assertIn("Generate 2 family meal ideas", prompt)
        # 2 adults + 2 children + half a toddler, rounded up
        self.assertIn("- Total servings needed: 5", prompt)
        self.assertIn("- Dietary restrictions: vegetarian, nut-free", prompt)
        self.assertNotIn("keto", prompt)
        self.assertIn("- Exclude ingredients: peanuts", prompt)

    async def test_default_meal_count_comes_from_settings(self):
        captured = {}

        def fake_complete(**kwargs):
            captured.update(kwargs)
            return "[]"

        async with self.Session() as session:
            meals = await generate_meals(session, self._request(), user_id="user-1", complete=fake_complete)
        self.assertEqual(meals, [])
        self.assertIn("Generate 5 family meal ideas", captured["user_prompt"])

    async def test_unknown_household_is_not_found(self):
        fake_complete = mock.Mock()
        async with self.Session() as session:
            with self.assertRaises(NotFoundError):
                await generate_meals(session, self._request(householdId="nope"), user_id="user-1", complete=fake_complete)
        fake_complete.assert_not_called()

    async def test_foreign_household_is_not_found(self):
        fake_complete = mock.Mock()
        async with self.Session() as session:
            with self.assertRaises(NotFoundError) as ctx:
                await generate_meals(
                    session,
                    self._request(householdId="house-2", groupIds=["neighbours"]),
                    user_id="user-1",
                    complete=fake_complete,
                )
        self.assertEqual(ctx.exception.message, "Household 'house-2' not found")
        fake_complete.assert_not_called()
        self.assertEqual(await self._count_meals(), 0)

    async def test_malformed_output_is_not_persisted(self):
        fake_complete = mock.Mock(return_value="here are some meals: chili, soup")
        async with self.Session() as session:
            with self.assertRaises(MalformedResponseError):
                await generate_meals(session, self._request(), user_id="user-1", complete=fake_complete)
        self.assertEqual(fake_complete.call_count, 1)
        self.assertEqual(await self._count_meals(), 0)

    async def test_upstream_failure_is_surfaced(self):
        fake_complete = mock.Mock(side_effect=UpstreamServiceError("OpenAI API error: 500"))
        async with self.Session() as session:
            with self.assertRaises(UpstreamServiceError) as ctx:
                await generate_meals(session, self._request(), user_id="user-1", complete=fake_complete)
        self.assertEqual(ctx.exception.message, "OpenAI API error: 500")
        self.assertEqual(fake_complete.call_count, 1)

    async def test_timeout_is_distinct_from_parse_error(self):
        self.settings.openai_request_timeout_seconds = 0.05

        def slow_complete(**kwargs):
            time.sleep(0.3)
            return json.dumps(SAMPLE_MEALS)

        async with self.Session() as session:
            with self.assertRaises(GenerationTimeoutError) as ctx:
                await generate_meals(session, self._request(), user_id="user-1", complete=slow_complete)
        self.assertEqual(ctx.exception.status_code, 504)
        self.assertNotIsInstance(ctx.exception, MalformedResponseError)
        self.assertEqual(await self._count_meals(), 0)


if __name__ == "__main__":
    unittest.main()
