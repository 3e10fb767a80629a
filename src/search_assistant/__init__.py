"""Web-search question answering with citations, charts and search history."""
