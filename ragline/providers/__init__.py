"""Concrete adapters behind the interfaces in :mod:`ragline.interfaces`.

- **embedding** -- OpenAI, Cohere and Hugging Face embedding APIs.
- **vector_store** -- ChromaDB persistent collection.
- **document_store** -- SQLite document registry and chunk table.
- **blob** -- HTTP / local file fetching with Google Drive link handling.
- **llm** -- OpenAI chat completions.
"""
