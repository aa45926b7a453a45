"""
Integration tests for the templates API
"""

import json

import pytest

pytestmark = pytest.mark.integration

ALICE = {"X-User-Id": "1", "X-User-Name": "alice"}
BOB = {"X-User-Id": "2", "X-User-Name": "bob"}


def templates_url(project_id, suffix=""):
    return f"/api/v1/projects/{project_id}/templates{suffix}"


async def create(client, project_id, name, payload, headers=ALICE):
    response = await client.post(
        templates_url(project_id),
        json={"name": name, "payload": payload},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["template_id"]


class TestTemplateCrud:
    async def test_create_template(self, test_client, projects, linear_payload):
        response = await test_client.post(
            templates_url(projects["source"]),
            json={"name": "daily", "payload": linear_payload, "description": "nightly"},
            headers=ALICE,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "daily"
        assert data["message"] == "Template created successfully"

        detail = await test_client.get(templates_url(projects["source"], f"/{data['template_id']}"))
        assert detail.status_code == 200
        body = detail.json()
        assert body["release_state"] == "OFFLINE"
        assert body["version"] == 1
        assert body["resource_ids"] == "1,2"
        assert body["user_id"] == 1

    async def test_create_with_cycle(self, test_client, projects, make_payload, shell_task):
        payload = make_payload([
            shell_task("a", pre_tasks=["b"]),
            shell_task("b", pre_tasks=["a"]),
        ])

        response = await test_client.post(
            templates_url(projects["source"]),
            json={"name": "loop", "payload": payload},
            headers=ALICE,
        )

        assert response.status_code == 400
        data = response.json()
        assert data["status"] == "error"
        assert data["error_code"] == "PROCESS_001"
        assert data["path"] == templates_url(projects["source"])

    async def test_create_requires_operator(self, test_client, projects, linear_payload):
        response = await test_client.post(
            templates_url(projects["source"]),
            json={"name": "daily", "payload": linear_payload},
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_001"

    async def test_list_templates(self, test_client, projects, linear_payload):
        await create(test_client, projects["source"], "first", linear_payload)
        await create(test_client, projects["source"], "second", linear_payload)

        response = await test_client.get(templates_url(projects["source"]))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [t["name"] for t in data["templates"]] == ["first", "second"]

    async def test_template_of_other_project_is_not_found(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.get(templates_url(projects["target"], f"/{template_id}"))

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_001"

    async def test_verify_name(self, test_client, projects, linear_payload):
        await create(test_client, projects["source"], "daily", linear_payload)

        free = await test_client.get(templates_url(projects["source"], "/verify-name"), params={"name": "weekly"})
        taken = await test_client.get(templates_url(projects["source"], "/verify-name"), params={"name": "daily"})

        assert free.status_code == 200
        assert taken.status_code == 409
        assert taken.json()["error_code"] == "RESOURCE_003"

    async def test_update_template(self, test_client, projects, linear_payload, make_payload, shell_task):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.put(
            templates_url(projects["source"], f"/{template_id}"),
            json={"name": "daily", "payload": make_payload([shell_task("only")])},
            headers=BOB,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 2
        assert data["modify_by"] == "bob"

    async def test_task_nodes(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        single = await test_client.get(templates_url(projects["source"], f"/{template_id}/task-nodes"))
        several = await test_client.get(
            templates_url(projects["source"], "/task-nodes"),
            params={"template_ids": [template_id, 12345]},
        )

        assert single.status_code == 200
        nodes = single.json()["task_nodes"][str(template_id)]
        assert [n["name"] for n in nodes] == ["extract", "transform", "load"]
        assert nodes[1]["preTasks"] == ["extract"]
        assert list(several.json()["task_nodes"]) == [str(template_id)]

    async def test_copy_template(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.post(templates_url(projects["source"], f"/{template_id}/copy"), headers=ALICE)

        assert response.status_code == 201
        assert response.json()["name"].startswith("daily_copy_")


class TestReleaseAndDelete:
    async def test_online_template_rejects_edit(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        release = await test_client.post(
            templates_url(projects["source"], f"/{template_id}/release"),
            json={"release_state": "ONLINE"},
            headers=ALICE,
        )
        assert release.status_code == 200
        assert release.json()["release_state"] == "ONLINE"

        update = await test_client.put(
            templates_url(projects["source"], f"/{template_id}"),
            json={"name": "daily", "payload": linear_payload},
            headers=ALICE,
        )
        assert update.status_code == 409
        assert update.json()["error_code"] == "RESOURCE_005"

    async def test_release_without_grants(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.post(
            templates_url(projects["source"], f"/{template_id}/release"),
            json={"release_state": "ONLINE"},
            headers=BOB,
        )

        assert response.status_code == 403
        data = response.json()
        assert data["error_code"] == "AUTH_005"
        assert data["details"]["resource_ids"] == [1, 2]

    async def test_release_unknown_state(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.post(
            templates_url(projects["source"], f"/{template_id}/release"),
            json={"release_state": "PAUSED"},
            headers=ALICE,
        )

        assert response.status_code == 422

    async def test_delete_template(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.delete(templates_url(projects["source"], f"/{template_id}"), headers=ALICE)

        assert response.status_code == 204
        missing = await test_client.get(templates_url(projects["source"], f"/{template_id}"))
        assert missing.status_code == 404

    async def test_delete_by_other_user(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        response = await test_client.delete(templates_url(projects["source"], f"/{template_id}"), headers=BOB)

        assert response.status_code == 403

    async def test_batch_delete(self, test_client, projects, linear_payload):
        mine = await create(test_client, projects["source"], "mine", linear_payload)
        theirs = await create(test_client, projects["source"], "theirs", linear_payload, headers=BOB)

        response = await test_client.post(
            templates_url(projects["source"], "/batch-delete"),
            json={"template_ids": [mine, theirs]},
            headers=ALICE,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["deleted_ids"] == [mine]
        assert data["failed_ids"] == [theirs]


class TestExportImport:
    async def test_export_then_import(self, test_client, projects, linear_payload):
        template_id = await create(test_client, projects["source"], "daily", linear_payload)

        export = await test_client.post(
            templates_url(projects["source"], "/export"),
            json={"template_ids": [template_id]},
            headers=ALICE,
        )

        assert export.status_code == 200
        assert export.headers["content-type"] == "application/json"
        assert "attachment" in export.headers["content-disposition"]
        bundle = json.loads(export.content)
        assert bundle[0]["processTemplateName"] == "daily"

        imported = await test_client.post(
            templates_url(projects["target"], "/import"),
            content=export.content,
            headers=ALICE,
        )

        assert imported.status_code == 201
        data = imported.json()
        assert len(data["template_ids"]) == 1
        assert data["template_names"][0].startswith("daily_import_")

        listing = await test_client.get(templates_url(projects["target"]))
        assert listing.json()["total"] == 1

    async def test_import_malformed_bundle(self, test_client, projects):
        response = await test_client.post(
            templates_url(projects["target"], "/import"),
            content=b"not json",
            headers=ALICE,
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_001"
