from spark_console.services.containers import ContainerControl, ContainerReader, MockContainerRuntime


class TestListContainers:
    async def test_lists_all(self, client):
        response = await client.get("/api/v1/containers")
        assert response.status_code == 200
        by_name = {c["name"]: c for c in response.json()}
        assert set(by_name) == {"vllm", "comfyui", "open-webui"}
        assert by_name["comfyui"]["status"] == "stopped"
        assert by_name["vllm"]["status"] == "running"
        assert by_name["vllm"]["cpu_pct"] == 12.5
        assert by_name["comfyui"]["cpu_pct"] is None

    async def test_empty_runtime_is_empty_list(self, client, test_app):
        test_app.state.container_reader = ContainerReader(MockContainerRuntime(containers=[]))
        response = await client.get("/api/v1/containers")
        assert response.status_code == 200
        assert response.json() == []

    async def test_unreachable_runtime_is_503(self, client, test_app):
        test_app.state.container_reader = ContainerReader(MockContainerRuntime(available=False))
        response = await client.get("/api/v1/containers")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "runtime_unavailable"


class TestContainerAction:
    async def test_start_stopped(self, client, container_runtime):
        response = await client.post(
            "/api/v1/containers/action", json={"container_id": "comfyui", "action": "start"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "running"
        assert container_runtime.performed[0][0] == "b2c3d4e5f6a1"

        listed = (await client.get("/api/v1/containers")).json()
        assert {c["name"]: c["status"] for c in listed}["comfyui"] == "running"

    async def test_unknown_container_is_404(self, client, container_runtime):
        response = await client.post(
            "/api/v1/containers/action", json={"container_id": "does-not-exist", "action": "restart"}
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"
        assert container_runtime.performed == []

    async def test_start_running_is_409(self, client):
        response = await client.post("/api/v1/containers/action", json={"container_id": "vllm", "action": "start"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "action_rejected"

    async def test_runtime_down_is_503(self, client, test_app):
        test_app.state.container_control = ContainerControl(MockContainerRuntime(available=False))
        response = await client.post("/api/v1/containers/action", json={"container_id": "vllm", "action": "stop"})
        assert response.status_code == 503

    async def test_invalid_action_is_422(self, client):
        response = await client.post("/api/v1/containers/action", json={"container_id": "vllm", "action": "kill"})
        assert response.status_code == 422

    async def test_disabled_feature_is_404(self, client, monkeypatch):
        from spark_console.config import settings

        monkeypatch.setattr(settings, "spark_containers_enabled", False)
        assert (await client.get("/api/v1/containers")).status_code == 404
        response = await client.post("/api/v1/containers/action", json={"container_id": "vllm", "action": "stop"})
        assert response.status_code == 404
