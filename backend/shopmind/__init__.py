"""ShopMind session tracking service."""
