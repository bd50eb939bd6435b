import unittest
from datetime import timedelta
from decimal import Decimal

from tests.base import *  # noqa: F401,F403

from menuadmin.services.entity_queries import (
    CategoryQueryBuilder,
    FileQueryBuilder,
    ItemQueryBuilder,
    StoreQueryBuilder,
    UserQueryBuilder,
)
from menuadmin.services.query_builder import AdvancedSearch, TextSearch


class EntityBuilderStateTests(unittest.TestCase):
    def test_soft_delete_filter_is_always_present(self):
        for cls in (StoreQueryBuilder, UserQueryBuilder, FileQueryBuilder, CategoryQueryBuilder, ItemQueryBuilder):
            with self.subTest(builder=cls.__name__):
                self.assertEqual(cls(RecordingCollection()).build_where(), {"deleted_at": None})

    def test_named_filters(self):
        builder = StoreQueryBuilder(RecordingCollection()).by_active_status(True).by_user("u1")
        self.assertEqual(builder.filters, {"deleted_at": None, "active": True, "user_id": "u1"})

    def test_range_helpers_use_advanced_search(self):
        builder = StoreQueryBuilder(RecordingCollection())
        builder.by_created_date_range(T0, T0 + timedelta(days=7))
        self.assertIsInstance(builder.search_mode, AdvancedSearch)
        self.assertEqual(
            builder.build_where()["AND"],
            [{"created_at": {"gte": T0, "lte": T0 + timedelta(days=7)}}],
        )

    def test_text_helper_replaces_advanced_search(self):
        builder = UserQueryBuilder(RecordingCollection()).by_created_after(T0).search_users("ann")
        self.assertIsInstance(builder.search_mode, TextSearch)
        self.assertEqual(builder.build_where(), {
            "deleted_at": None,
            "OR": [{"username": {"contains": "ann", "mode": "insensitive"}}],
        })

    def test_file_type_wraps_scalar(self):
        builder = FileQueryBuilder(RecordingCollection()).by_file_type("image/png")
        self.assertEqual(builder.build_where()["AND"], [{"mime_type": {"in": ["image/png"]}}])

    def test_store_title_is_nested_through_category(self):
        builder = ItemQueryBuilder(RecordingCollection()).by_store_title("corner")
        self.assertEqual(
            builder.build_where()["AND"],
            [{"category": {"store": {"title": {"contains": "corner", "mode": "insensitive"}}}}],
        )


    def test_named_advanced_filters_combine(self):
        builder = (
            ItemQueryBuilder(RecordingCollection())
            .by_store_title("corner")
            .by_price_range(Decimal("1"), Decimal("3"))
        )
        self.assertEqual(builder.build_where()["AND"], [
            {"category": {"store": {"title": {"contains": "corner", "mode": "insensitive"}}}},
            {"price": {"gte": Decimal("1"), "lte": Decimal("3")}},
        ])

    def test_open_price_bounds(self):
        low_only = ItemQueryBuilder(RecordingCollection()).by_price_range(low=Decimal("2"))
        self.assertEqual(low_only.build_where()["AND"], [{"price": {"gte": Decimal("2")}}])
        high_only = ItemQueryBuilder(RecordingCollection()).by_price_range(high=Decimal("2"))
        self.assertEqual(high_only.build_where()["AND"], [{"price": {"lte": Decimal("2")}}])
        self.assertIsNone(ItemQueryBuilder(RecordingCollection()).by_price_range().search_mode)


class EntityBuilderDatabaseTests(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seed = await self.seed_menu()

    async def test_deleted_stores_are_excluded(self):
        result = await StoreQueryBuilder.bind(self.session_factory).execute()
        self.assertEqual(result.total_count, 3)
        self.assertNotIn("Cafe Closed", [row["title"] for row in result.data])

    async def test_store_relations(self):
        result = await (
            StoreQueryBuilder.bind(self.session_factory)
            .by_user(self.seed["owner"].id)
            .search_stores("corner")
            .with_relations()
            .execute()
        )
        (row,) = result.data
        self.assertEqual(row["title"], "Cafe Corner")
        self.assertEqual(row["user"]["username"], "owner")
        self.assertEqual([b["title"] for b in row["branches"]], ["Main"])

    async def test_store_type_membership(self):
        result = await (
            StoreQueryBuilder.bind(self.session_factory)
            .by_store_type_advanced([self.seed["bistro"].id])
            .execute()
        )
        self.assertEqual([row["title"] for row in result.data], ["Bistro"])

    async def test_users_by_role_with_profile(self):
        result = await (
            UserQueryBuilder.bind(self.session_factory)
            .by_role("STORE_ADMIN")
            .with_profile()
            .execute()
        )
        # the deleted "ghost" user is excluded
        (row,) = result.data
        self.assertEqual(row["username"], "owner")
        self.assertEqual(row["profile"]["first_name"], "Olga")

    async def test_username_pattern(self):
        result = await UserQueryBuilder.bind(self.session_factory).by_username_pattern("ADM").execute()
        self.assertEqual([row["username"] for row in result.data], ["admin"])

    async def test_files_by_size_and_owner(self):
        result = await (
            FileQueryBuilder.bind(self.session_factory)
            .by_owner(self.seed["owner"].id)
            .by_file_size_range(100, 4096)
            .with_owner()
            .execute()
        )
        self.assertEqual(sorted(row["name"] for row in result.data), ["logo.png", "menu.pdf"])
        self.assertEqual(result.data[0]["owner"]["username"], "owner")

        published = await (
            FileQueryBuilder.bind(self.session_factory)
            .by_published_status(True)
            .by_storage_type("local")
            .execute()
        )
        self.assertEqual([row["name"] for row in published.data], ["menu.pdf"])

    async def test_categories_with_items(self):
        result = await (
            CategoryQueryBuilder.bind(self.session_factory)
            .by_store(self.seed["corner"].id)
            .order_by({"position": "asc"})
            .with_relations()
            .execute()
        )
        self.assertEqual([row["title"] for row in result.data], ["Food", "Drinks"])
        drinks = result.data[1]
        # deleted items are filtered out of the included relation
        self.assertEqual(sorted(i["title"] for i in drinks["items"]), ["Espresso", "Latte"])
        self.assertEqual(drinks["store"], {"id": self.seed["corner"].id, "title": "Cafe Corner"})

    async def test_items_by_price_and_store(self):
        result = await (
            ItemQueryBuilder.bind(self.session_factory)
            .by_price_range(Decimal("2.00"), Decimal("3.00"))
            .order_by({"price": "asc"})
            .execute()
        )
        self.assertEqual([row["title"] for row in result.data], ["Croissant", "Espresso"])

        result = await ItemQueryBuilder.bind(self.session_factory).by_store_title("bistro").execute()
        self.assertEqual([row["title"] for row in result.data], ["Steak"])

    async def test_store_title_and_price_together(self):
        result = await (
            ItemQueryBuilder.bind(self.session_factory)
            .by_store_title("bistro")
            .by_price_range(Decimal("0"), Decimal("5"))
            .execute()
        )
        self.assertEqual(result.data, [])

        result = await (
            ItemQueryBuilder.bind(self.session_factory)
            .by_store_title("corner")
            .by_price_range(high=Decimal("3"))
            .order_by({"price": "asc"})
            .execute()
        )
        self.assertEqual([row["title"] for row in result.data], ["Croissant", "Espresso"])
