"""
Unit tests for task parameter variants

Tests per-type parameter checks, resource extraction and the type registry.
"""

import json

import pytest

from flowtemplates.workflows.parameters import (
    DefaultParameters,
    ShellParameters,
    SparkParameters,
    check_other_params,
    check_task_node_parameters,
    parameters_class,
    parse_task_params,
    register_parameter_type,
    PARAMETER_TYPES,
    AbstractParameters,
)

pytestmark = pytest.mark.unit


class TestParameterRegistry:
    """Test resolution of task types to parameter variants"""

    def test_known_type(self):
        assert parameters_class("SHELL") is ShellParameters

    def test_lookup_is_case_insensitive(self):
        assert parameters_class("spark") is SparkParameters

    def test_unknown_type_uses_default(self):
        assert parameters_class("JUPYTER") is DefaultParameters
        assert parameters_class(None) is DefaultParameters

    def test_unknown_type_passes_check(self):
        assert check_task_node_parameters({"anything": 1}, "JUPYTER") is True

    def test_register_new_type(self):
        class SeaTunnelParameters(AbstractParameters):
            env: str = ""

            def check_parameters(self) -> bool:
                return bool(self.env)

        register_parameter_type("SEATUNNEL", SeaTunnelParameters)
        try:
            assert check_task_node_parameters({"env": ""}, "SEATUNNEL") is False
            assert check_task_node_parameters({"env": "spark"}, "SEATUNNEL") is True
        finally:
            del PARAMETER_TYPES["SEATUNNEL"]

    def test_register_lower_case_type(self):
        class ChunjunParameters(AbstractParameters):
            def check_parameters(self) -> bool:
                return False

        register_parameter_type("chunjun", ChunjunParameters)
        try:
            assert parameters_class("CHUNJUN") is ChunjunParameters
            assert parameters_class("chunjun") is ChunjunParameters
        finally:
            del PARAMETER_TYPES["CHUNJUN"]


class TestParameterChecks:
    """Test type-specific structural rules"""

    @pytest.mark.parametrize(
        "task_type,params,expected",
        [
            ("SHELL", {"rawScript": "echo hi"}, True),
            ("SHELL", {"rawScript": "   "}, False),
            ("SHELL", {}, False),
            ("PYTHON", {"rawScript": "print(1)"}, True),
            ("SQL", {"type": "MYSQL", "datasource": 7, "sql": "select 1"}, True),
            ("SQL", {"type": "MYSQL", "datasource": 0, "sql": "select 1"}, False),
            ("SQL", {"type": "MYSQL", "datasource": 7, "sql": ""}, False),
            ("PROCEDURE", {"type": "MYSQL", "datasource": 7, "method": "call p()"}, True),
            ("PROCEDURE", {"type": "MYSQL", "datasource": 7}, False),
            ("SUB_PROCESS", {"processTemplateId": 12}, True),
            ("SUB_PROCESS", {"processTemplateId": 0}, False),
            ("SUB_PROCESS", {}, False),
            ("SPARK", {"mainJar": {"id": 3}, "programType": "SCALA"}, True),
            ("MR", {"programType": "JAVA"}, False),
            ("FLINK", {"mainJar": {"id": 3}}, False),
            ("HTTP", {"url": "http://example.com", "httpMethod": "GET"}, True),
            ("HTTP", {"url": "", "httpMethod": "GET"}, False),
            ("DATAX", {"customConfig": 1, "json": "{}"}, True),
            ("DATAX", {"customConfig": 1}, False),
            ("DATAX", {"dataSource": 1, "dataTarget": 2, "sql": "select *", "targetTable": "t"}, True),
            ("DATAX", {"dataSource": 1, "dataTarget": 0, "sql": "select *", "targetTable": "t"}, False),
            ("DEPENDENT", {}, True),
            ("CONDITIONS", {}, True),
        ],
    )
    def test_check(self, task_type, params, expected):
        assert check_task_node_parameters(params, task_type) is expected

    def test_params_as_json_text(self):
        assert check_task_node_parameters(json.dumps({"rawScript": "echo hi"}), "SHELL") is True

    def test_params_not_an_object(self):
        assert check_task_node_parameters("[1, 2]", "SHELL") is False
        assert check_task_node_parameters("{not json", "SHELL") is False

    def test_params_of_wrong_field_type(self):
        assert parse_task_params("SQL", {"datasource": "abc"}) is None

    def test_empty_params_for_default_type(self):
        assert isinstance(parse_task_params("CONDITIONS", None), AbstractParameters)


class TestResourceFiles:
    """Test resource references declared by parameters"""

    def test_shell_resources(self):
        params = parse_task_params("SHELL", {"rawScript": "x", "resourceList": [{"id": 4}, {"id": 5}]})

        assert [r.id for r in params.resource_files()] == [4, 5]

    def test_jar_resources_include_main_jar(self):
        params = parse_task_params(
            "SPARK",
            {"mainJar": {"id": 9}, "programType": "JAVA", "resourceList": [{"id": 4}]},
        )

        assert sorted(r.id for r in params.resource_files()) == [4, 9]

    def test_types_without_resources(self):
        params = parse_task_params("HTTP", {"url": "http://x", "httpMethod": "GET"})

        assert params.resource_files() == []


class TestOtherParams:
    """Test the generic extras check"""

    @pytest.mark.parametrize("extras", [None, "", {}, {"k": "v"}, '{"k": "v"}'])
    def test_valid(self, extras):
        assert check_other_params(extras) is True

    @pytest.mark.parametrize("extras", ["not json", "[1]", 5])
    def test_invalid(self, extras):
        assert check_other_params(extras) is False
