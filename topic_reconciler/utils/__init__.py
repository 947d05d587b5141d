"""
Utility modules for the topic reconciler.

Cross-cutting concerns:
- Embeddings: Embedding collaborator and batching gateway
- LLM: Generative-text collaborator
- Storage: Report export (JSON + CSV)
"""
