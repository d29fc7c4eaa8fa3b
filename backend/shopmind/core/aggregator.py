"""
Session Aggregator - folds messages into SessionMetadata.

Every function here is pure: inputs are never mutated and a new metadata
value is returned.
"""

from typing import Iterable

from ..models import Message, SessionMetadata


def empty_metadata() -> SessionMetadata:
    """Zero value for a session with no messages."""
    return SessionMetadata()


def fold_message(metadata: SessionMetadata, message: Message) -> SessionMetadata:
    """
    Return ``metadata`` updated with one more message.

    Args:
        metadata: Aggregates for the messages seen so far
        message: Newly appended message

    Returns:
        SessionMetadata: New aggregates including ``message``
    """
    is_user = message.sender == "user"
    products = message.products or []

    search_queries = list(metadata.search_queries)
    if is_user:
        search_queries.append(message.content)

    categories = list(metadata.categories)
    for product in products:
        if product.category not in categories:
            categories.append(product.category)

    return metadata.model_copy(update={
        "message_count": metadata.message_count + 1,
        "user_message_count": metadata.user_message_count + (1 if is_user else 0),
        "bot_message_count": metadata.bot_message_count + (0 if is_user else 1),
        "product_interactions": metadata.product_interactions + len(products),
        "search_queries": search_queries,
        "categories": categories,
    })


def rebuild_metadata(messages: Iterable[Message]) -> SessionMetadata:
    """Recompute metadata from scratch for a full message list."""
    metadata = empty_metadata()
    for message in messages:
        metadata = fold_message(metadata, message)
    return metadata
