"""
Basic unit tests for Embedding Registry.
Covers persistence, backup recovery and model/dimension guards.
"""

import pytest
import json
import os
import tempfile
from topic_reconciler.models.topic import Topic
from topic_reconciler.registry.embedding_registry import EmbeddingRegistry


def test_registry_initialization():
    """Test creating new registry."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_path = os.path.join(tmpdir, "embeddings.json")
        registry = EmbeddingRegistry(registry_path, model="models/text-embedding-004")

        assert len(registry) == 0
        assert registry.version == "1.0.0"
        assert not os.path.exists(registry_path)


def test_put_and_get():
    """Test storing and reading vectors."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = EmbeddingRegistry(os.path.join(tmpdir, "embeddings.json"), model="m", dimensions=3)

        registry.put("Limites", [0.1, 0.2, 0.3])

        assert registry.get("Limites") == [0.1, 0.2, 0.3]
        assert registry.get("Derivadas") is None
        assert len(registry) == 1


def test_get_returns_copy():
    """Test that callers can't mutate stored vectors through get()."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = EmbeddingRegistry(os.path.join(tmpdir, "embeddings.json"), model="m")
        registry.put("Limites", [0.1, 0.2])

        vector = registry.get("Limites")
        vector[0] = 99.0

        assert registry.get("Limites") == [0.1, 0.2]


def test_wrong_dimensions_refused():
    """Test that vectors of the wrong length raise ValueError."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = EmbeddingRegistry(os.path.join(tmpdir, "embeddings.json"), model="m", dimensions=768)

        with pytest.raises(ValueError, match="768"):
            registry.put("Limites", [0.1] * 512)


def test_compatible_with():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = EmbeddingRegistry(os.path.join(tmpdir, "embeddings.json"), model="m", dimensions=768)

        assert registry.compatible_with("m", 768)
        assert registry.compatible_with("m", None)
        assert not registry.compatible_with("m", 512)
        assert not registry.compatible_with("other", 768)


def test_save_and_load():
    """Test registry persistence."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_path = os.path.join(tmpdir, "embeddings.json")

        registry1 = EmbeddingRegistry(registry_path, model="m", dimensions=2)
        registry1.put("Introdução a Vetores", [0.5, 0.5])
        registry1.save()

        registry2 = EmbeddingRegistry(registry_path, model="m", dimensions=2)

        assert len(registry2) == 1
        assert registry2.get("Introdução a Vetores") == [0.5, 0.5]
        assert not os.path.exists(f"{registry_path}.tmp")


def test_other_model_ignored_on_load():
    """Test that vectors saved for another model are not loaded."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_path = os.path.join(tmpdir, "embeddings.json")

        old = EmbeddingRegistry(registry_path, model="old-model")
        old.put("Limites", [0.1, 0.2])
        old.save()

        registry = EmbeddingRegistry(registry_path, model="new-model")

        assert len(registry) == 0


def test_backup_created_on_second_save():
    """Test that saving over an existing file leaves a .backup copy."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_path = os.path.join(tmpdir, "embeddings.json")
        registry = EmbeddingRegistry(registry_path, model="m")

        registry.put("Limites", [0.1, 0.2])
        registry.save()
        registry.put("Derivadas", [0.3, 0.4])
        registry.save()

        with open(f"{registry_path}.backup") as f:
            backup = json.load(f)
        assert list(backup["entries"]) == ["Limites"]


def test_restore_from_backup_when_corrupted():
    """Test recovery from a corrupted registry file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_path = os.path.join(tmpdir, "embeddings.json")
        registry = EmbeddingRegistry(registry_path, model="m")
        registry.put("Limites", [0.1, 0.2])
        registry.save()
        registry.save()

        with open(registry_path, 'w') as f:
            f.write("{not valid json")

        restored = EmbeddingRegistry(registry_path, model="m")

        assert restored.get("Limites") == [0.1, 0.2]
        with open(registry_path) as f:
            assert json.load(f)["model"] == "m"


def test_corrupted_without_backup_starts_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_path = os.path.join(tmpdir, "embeddings.json")
        with open(registry_path, 'w') as f:
            f.write("garbage")

        registry = EmbeddingRegistry(registry_path, model="m")

        assert len(registry) == 0


def test_keys_follow_embedding_text():
    """Test that a topic's description is part of its cache key."""
    plain = Topic.create("Eigenvalues")
    described = Topic.create("Eigenvalues", description="Spectral theory")

    assert plain.embedding_text == "Eigenvalues"
    assert described.embedding_text == "Eigenvalues\nSpectral theory"


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
