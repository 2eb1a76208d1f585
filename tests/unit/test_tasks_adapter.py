"""
Tests for the Google Tasks adapter.
"""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from adapters.tasks import GoogleTasksBackend, _parse_task
from models import ConciergeError, Identity
from rpc.tasks import tasks_rpc
from tests.helpers import make_context, mock_api_chain, mock_backends

IDENTITY = Identity(access_token="t")

LISTS = {"items": [{"id": "L1", "title": "My Tasks"}, {"id": "L2", "title": "Errands"}]}


@pytest.fixture
def service() -> MagicMock:
    service = MagicMock()
    mock_api_chain(service, "tasklists.list.execute", LISTS)
    return service


class TestParseTask:

    def test_tagged_with_list(self) -> None:
        task = _parse_task({"id": "T1", "title": "Call"}, {"id": "L1", "title": "My Tasks"})
        assert task["status"] == "needsAction"
        assert task["taskListId"] == "L1"
        assert task["taskListTitle"] == "My Tasks"


class TestListTasks:

    @pytest.mark.asyncio
    async def test_all_lists(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.list.execute", side_effect=[
            {"items": [{"id": "T1", "title": "a"}]},
            {"items": [{"id": "T2", "title": "b"}]},
        ])
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            result = await GoogleTasksBackend().list_tasks(IDENTITY, {"maxResults": 5})

        assert result["count"] == 2
        assert [t["taskListId"] for t in result["tasks"]] == ["L1", "L2"]
        assert result["taskLists"] == [{"id": "L1", "title": "My Tasks"}, {"id": "L2", "title": "Errands"}]
        service.tasks().list.assert_called_with(tasklist="L2", maxResults=5)

    @pytest.mark.asyncio
    async def test_one_list_with_filters(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.list.execute", {"items": []})
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            result = await GoogleTasksBackend().list_tasks(
                IDENTITY, {"taskListId": "L2", "showCompleted": False, "maxResults": 500}
            )

        assert result["taskLists"] == [{"id": "L2", "title": "Errands"}]
        service.tasks().list.assert_called_once_with(tasklist="L2", maxResults=100, showCompleted=False)

    @pytest.mark.asyncio
    async def test_list_id_alias_through_dispatcher(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.list.execute", {"items": [{"id": "T2", "title": "b"}]})
        ctx = make_context(backends=replace(mock_backends(), tasks=GoogleTasksBackend()))

        with patch("adapters.tasks.get_tasks_service", return_value=service):
            response = await tasks_rpc({"op": "list", "tasklistId": "L2"}, ctx)

        assert response.status == 200
        assert response.body["data"]["taskLists"] == [{"id": "L2", "title": "Errands"}]
        service.tasks().list.assert_called_once_with(tasklist="L2", maxResults=100)

    @pytest.mark.asyncio
    async def test_non_numeric_max_results_never_reaches_google(self, service: MagicMock) -> None:
        ctx = make_context(backends=replace(mock_backends(), tasks=GoogleTasksBackend()))

        with patch("adapters.tasks.get_tasks_service", return_value=service):
            response = await tasks_rpc({"op": "list", "maxResults": "ten"}, ctx)

        assert response.status == 400
        assert response.body["code"] == "INVALID_PARAM"
        service.tasks().list.assert_not_called()


class TestMutations:

    @pytest.mark.asyncio
    async def test_create_on_first_list(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.insert.execute", {"id": "T9", "title": "Call"})
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            task = await GoogleTasksBackend().create_task(IDENTITY, {"title": "Call"})

        assert task["taskListId"] == "L1"
        service.tasks().insert.assert_called_with(tasklist="L1", body={"title": "Call"})

    @pytest.mark.asyncio
    async def test_create_on_named_list(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.insert.execute", {"id": "T9"})
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            await GoogleTasksBackend().create_task(IDENTITY, {"title": "Milk", "taskListId": "L2"})

        service.tasks().insert.assert_called_with(tasklist="L2", body={"title": "Milk"})

    @pytest.mark.asyncio
    async def test_create_unknown_list(self, service: MagicMock) -> None:
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            with pytest.raises(ConciergeError) as exc_info:
                await GoogleTasksBackend().create_task(IDENTITY, {"title": "x", "taskListId": "nope"})

        assert exc_info.value.code == "TASK_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_reopen_clears_completed(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.patch.execute", {"id": "T1", "status": "needsAction"})
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            await GoogleTasksBackend().update_task(IDENTITY, "L1", "T1", {"status": "needsAction"})

        service.tasks().patch.assert_called_with(
            tasklist="L1", task="T1", body={"status": "needsAction", "completed": None}
        )

    @pytest.mark.asyncio
    async def test_delete(self, service: MagicMock) -> None:
        mock_api_chain(service, "tasks.delete.execute", "")
        with patch("adapters.tasks.get_tasks_service", return_value=service):
            assert await GoogleTasksBackend().delete_task(IDENTITY, "L1", "T1") is None

        service.tasks().delete.assert_called_with(tasklist="L1", task="T1")
