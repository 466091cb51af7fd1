from __future__ import annotations

from services.api_gateway.app.aggregation import ApiDescription, PathTransformer, RewriteRule, ServiceDescriptor

from .factories import descriptor, op, openapi_doc


def _identity() -> ServiceDescriptor:
    return ServiceDescriptor(
        service_id="identity",
        base_url="http://identity-service:8080",
        rewrite_rules=(
            RewriteRule("/api/v1/identity/appusers", "/api/v1/appusers", ignore_case=True),
            RewriteRule("/api/v1/auth", "/api/v1/auth"),
        ),
    )


def test_identity_appusers_path_is_published_under_gateway_prefix():
    transformer = PathTransformer()
    external, warning = transformer.to_external(_identity(), "/api/v1/appusers/{id}")
    assert external == "/api/v1/identity/appusers/{id}"
    assert warning is None


def test_forward_rewrite_returns_the_internal_path():
    transformer = PathTransformer()
    assert transformer.to_internal(_identity(), "/api/v1/identity/appusers/{id}") == "/api/v1/appusers/{id}"
    assert transformer.to_internal(_identity(), "/api/v1/unknown") is None


def test_case_insensitive_rule_normalizes_controller_casing():
    transformer = PathTransformer()
    external, _ = transformer.to_external(_identity(), "/api/v1/AppUsers")
    assert external == "/api/v1/identity/appusers"


def test_identity_rule_keeps_auth_paths():
    external, warning = PathTransformer().to_external(_identity(), "/api/v1/auth/login")
    assert external == "/api/v1/auth/login"
    assert warning is None


def test_prefix_only_matches_whole_segments():
    transformer = PathTransformer()
    external, warning = transformer.to_external(_identity(), "/api/v1/appusersettings")
    assert external == "/api/v1/appusersettings"
    assert warning is not None
    assert warning.kind == "unmapped_path"
    assert warning.service_id == "identity"


def test_first_matching_rule_wins():
    user = descriptor("user", ("/api/v1/users", "/api/users"), ("/api/v1/users", "/api"))
    transformer = PathTransformer()
    assert transformer.to_external(user, "/api/users/{id}")[0] == "/api/v1/users/{id}"
    assert transformer.to_external(user, "/api/users")[0] == "/api/v1/users"
    assert transformer.to_external(user, "/api/Values")[0] == "/api/v1/users/Values"


def test_unmapped_path_passes_through_unchanged():
    admin = descriptor("admin", ("/api/v1/admin", "/api"))
    external, warning = PathTransformer().to_external(admin, "/health")
    assert external == "/health"
    assert warning.path == "/health"


def test_transform_document_rekeys_operations_and_collects_warnings():
    task = descriptor("task", ("/api/v1/tasks", "/api/tasks"), ("/api/v1/tasks", "/api"))
    document = ApiDescription.from_payload(
        openapi_doc(
            {
                "/api/tasks": {"get": op("list_tasks"), "post": op("create_task")},
                "/api/tasks/{id}": {"get": op("get_task")},
                "/health": {"get": op("health")},
            }
        )
    )
    transformed, warnings = PathTransformer().transform_document(task, document)
    assert sorted(transformed.operations) == [
        ("get", "/api/v1/tasks"),
        ("get", "/api/v1/tasks/{id}"),
        ("get", "/health"),
        ("post", "/api/v1/tasks"),
    ]
    assert transformed.operations[("get", "/api/v1/tasks/{id}")].spec["operationId"] == "get_task"
    assert [w.kind for w in warnings] == ["unmapped_path"]
    # The source document is left untouched.
    assert ("get", "/api/tasks") in document.operations


def test_two_internal_paths_rewriting_onto_one_keep_the_first():
    svc = descriptor("svc", ("/api/v1/things", "/api/a"), ("/api/v1/things", "/api/b"))
    document = ApiDescription.from_payload(
        openapi_doc({"/api/a": {"get": op("from_a")}, "/api/b": {"get": op("from_b")}})
    )
    transformed, warnings = PathTransformer().transform_document(svc, document)
    assert transformed.operations[("get", "/api/v1/things")].spec["operationId"] == "from_a"
    assert [w.kind for w in warnings] == ["duplicate_path"]
