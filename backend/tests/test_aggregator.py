"""
Unit tests for the session aggregator.
"""

from shopmind.core.aggregator import empty_metadata, fold_message, rebuild_metadata

from conftest import make_message, make_product


class TestFoldMessage:
    """Tests for fold_message."""

    def test_user_message(self):
        metadata = fold_message(empty_metadata(), make_message("Show me laptops"))
        assert metadata.message_count == 1
        assert metadata.user_message_count == 1
        assert metadata.bot_message_count == 0
        assert metadata.search_queries == ["Show me laptops"]
        assert metadata.product_interactions == 0

    def test_bot_message_with_products(self):
        message = make_message(
            "Here are some laptops",
            sender="bot",
            products=[make_product("Electronics", "p1"), make_product("Electronics", "p2")],
        )
        metadata = fold_message(empty_metadata(), message)
        assert metadata.bot_message_count == 1
        assert metadata.product_interactions == 2
        assert metadata.categories == ["Electronics"]
        # Bot text is never a search query
        assert metadata.search_queries == []

    def test_laptop_conversation(self):
        metadata = rebuild_metadata([
            make_message("Show me laptops"),
            make_message(
                "Found these",
                sender="bot",
                products=[make_product("Electronics", "p1"), make_product("Electronics", "p2")],
            ),
        ])
        assert set(metadata.categories) == {"Electronics"}
        assert metadata.product_interactions == 2
        assert metadata.search_queries == ["Show me laptops"]

    def test_repeated_queries_are_kept(self):
        metadata = rebuild_metadata([make_message("red shoes"), make_message("red shoes")])
        assert metadata.search_queries == ["red shoes", "red shoes"]

    def test_categories_union(self):
        metadata = rebuild_metadata([
            make_message("a", sender="bot", products=[make_product("Shoes")]),
            make_message("b", sender="bot", products=[make_product("Hats"), make_product("Shoes")]),
        ])
        assert sorted(metadata.categories) == ["Hats", "Shoes"]

    def test_input_not_mutated(self):
        before = fold_message(empty_metadata(), make_message("first"))
        snapshot = before.model_dump()
        fold_message(before, make_message("second", products=[make_product("Books")]))
        assert before.model_dump() == snapshot

    def test_counts_stay_consistent(self):
        metadata = empty_metadata()
        senders = ["user", "bot", "bot", "user", "bot"]
        for count, sender in enumerate(senders, 1):
            metadata = fold_message(metadata, make_message("hello there", sender=sender))
            assert metadata.message_count == count
            assert metadata.user_message_count + metadata.bot_message_count == count

    def test_metadata_holds_only_derived_counts(self):
        metadata = rebuild_metadata([make_message("hello there")])
        assert set(metadata.model_dump(by_alias=True)) == {
            "messageCount", "userMessageCount", "botMessageCount",
            "productInteractions", "searchQueries", "categories",
        }
