import struct


def write_gguf(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"GGUF" + struct.pack("<IQQ", 3, 10, 4) + b"\0" * 32)


class TestModelsEndpoint:
    async def test_empty_root(self, client):
        response = await client.get("/api/v1/models")
        assert response.status_code == 200
        assert response.json() == []

    async def test_lists_models(self, client, models_dir):
        write_gguf(models_dir / "mistral-7b.Q5_K_M.gguf")
        write_gguf(models_dir / "sub" / "phi-3.gguf")

        response = await client.get("/api/v1/models")
        assert response.status_code == 200
        data = response.json()
        assert [m["name"] for m in data] == ["mistral-7b.Q5_K_M", "phi-3"]
        assert data[0]["format"] == "GGUF"
        assert data[0]["size_bytes"] == (models_dir / "mistral-7b.Q5_K_M.gguf").stat().st_size
        assert data[0]["metadata"]["tensor_count"] == 10

    async def test_sees_new_files_without_restart(self, client, models_dir):
        assert (await client.get("/api/v1/models")).json() == []
        write_gguf(models_dir / "fresh.gguf")
        assert [m["name"] for m in (await client.get("/api/v1/models")).json()] == ["fresh"]

    async def test_disabled_feature_is_404(self, client, monkeypatch):
        from spark_console.config import settings

        monkeypatch.setattr(settings, "spark_models_enabled", False)
        response = await client.get("/api/v1/models")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"
