"""
Unit tests for step ordering and variable substitution
"""

import pytest

from datanexus.datasources.requests import (
    ElasticsearchQuery,
    MCPResourceRead,
    MCPToolCall,
    MongoQuery,
    SqlQuery,
)
from datanexus.services import plan_executor


class TestSubstitute:
    """Test cases for substitute"""

    def test_numeric_value_unquoted(self):
        """Test that numeric values are inserted bare"""
        sql = plan_executor.substitute("SELECT * FROM orders WHERE id = $id", {"$id": "7"})

        assert sql == "SELECT * FROM orders WHERE id = 7"

    def test_text_value_quoted_and_escaped(self):
        """Test that text values are quoted with embedded quotes doubled"""
        sql = plan_executor.substitute("SELECT * FROM users WHERE name = $name", {"$name": "O'Brien"})

        assert sql == "SELECT * FROM users WHERE name = 'O''Brien'"

    def test_identity_without_tokens(self):
        """Test that text without tokens is unchanged"""
        sql = "SELECT '$' || price FROM items"

        assert plan_executor.substitute(sql, {"$id": "1"}) == sql

    def test_unbound_tokens_left_alone(self):
        """Test that only bound tokens are replaced"""
        sql = plan_executor.substitute("WHERE a = $a AND b = $b", {"$a": "-1.5"})

        assert sql == "WHERE a = -1.5 AND b = $b"

    def test_longer_names_not_partially_replaced(self):
        """Test that $id does not replace the prefix of $id_list"""
        sql = plan_executor.substitute("WHERE x = $id_list", {"$id": "1"})

        assert sql == "WHERE x = $id_list"

    def test_multi_value_rendered_per_item(self):
        """Test that joined multi-row values become a literal list"""
        sql = plan_executor.substitute("WHERE name IN ($names)", {"$names": "ann, bob"})

        assert sql == "WHERE name IN ('ann', 'bob')"

    def test_multi_value_numbers(self):
        """Test that joined numbers stay bare"""
        sql = plan_executor.substitute("WHERE id IN ($ids)", {"$ids": "1, 2, 3"})

        assert sql == "WHERE id IN (1, 2, 3)"

    def test_none_and_empty(self):
        """Test passthrough of empty input"""
        assert plan_executor.substitute(None, {"$a": "1"}) is None
        assert plan_executor.substitute("WHERE a = $a", {}) == "WHERE a = $a"


class TestExtractOutputValue:
    """Test cases for extract_output_value"""

    def test_single_row(self):
        """Test that one row yields its value as text"""
        assert plan_executor.extract_output_value([{"id": 5}], "id") == "5"

    def test_multiple_rows_joined(self):
        """Test that multiple rows are joined with a comma and space"""
        rows = [{"id": 1}, {"id": 2}, {"id": 3}]

        assert plan_executor.extract_output_value(rows, "id") == "1, 2, 3"

    def test_case_insensitive_field(self):
        """Test that field names match regardless of case"""
        assert plan_executor.extract_output_value([{"UserId": "abc"}], "userid") == "abc"

    @pytest.mark.parametrize("rows,field", [
        (None, "id"),
        ([], "id"),
        ([{"id": 1}], None),
        ([{"id": 1}], "missing"),
        ([{"id": None}], "id"),
    ])
    def test_nothing_to_extract(self, rows, field):
        """Test that empty input and missing fields give None"""
        assert plan_executor.extract_output_value(rows, field) is None

    def test_structured_values_as_json(self):
        """Test that dict values are rendered as JSON"""
        assert plan_executor.extract_output_value([{"meta": {"a": 1}}], "meta") == '{"a": 1}'


class TestOrdering:
    """Test cases for order, group_by_step and has_dependency"""

    def test_identity_without_steps(self):
        """Test that unstepped requests keep their order"""
        requests = [SqlQuery(sql="SELECT 2"), SqlQuery(sql="SELECT 1")]

        assert plan_executor.order(requests) == requests

    def test_sorted_by_step_with_unstepped_last(self):
        """Test ascending step order, unstepped requests last"""
        a = SqlQuery(sql="SELECT 'a'", step=2)
        b = SqlQuery(sql="SELECT 'b'")
        c = SqlQuery(sql="SELECT 'c'", step=1)

        assert plan_executor.order([a, b, c]) == [c, a, b]

    def test_stable_within_step(self):
        """Test that requests of the same step keep their relative order"""
        a = SqlQuery(sql="SELECT 'a'", step=1)
        b = SqlQuery(sql="SELECT 'b'", step=1)

        assert plan_executor.order([a, b]) == [a, b]

    def test_group_by_step(self):
        """Test grouping into execution steps"""
        a = SqlQuery(sql="SELECT 'a'", step=1)
        b = SqlQuery(sql="SELECT 'b'", step=1)
        c = SqlQuery(sql="SELECT 'c'", step=2)

        assert plan_executor.group_by_step([c, a, b]) == [[a, b], [c]]

    def test_has_dependency(self):
        """Test that a dependency exists iff dependsOn is set"""
        assert plan_executor.has_dependency(SqlQuery(sql="SELECT 1", step=2, dependsOn=1))
        assert not plan_executor.has_dependency(SqlQuery(sql="SELECT 1", step=2))

    def test_variable_name(self):
        """Test normalization of outputAs names"""
        assert plan_executor.variable_name("user_id") == "$user_id"
        assert plan_executor.variable_name("$user_id") == "$user_id"


class TestApplyVariables:
    """Test cases for apply_variables"""

    def setup_method(self):
        self.variables = {"$user_id": "42", "$name": "ann"}

    def test_sql_quoting(self):
        """Test SQL substitution with literal rendering"""
        request = plan_executor.apply_variables(
            SqlQuery(sql="SELECT * FROM t WHERE u = $user_id AND n = $name"), self.variables
        )

        assert request.sql == "SELECT * FROM t WHERE u = 42 AND n = 'ann'"

    def test_mcp_arguments_nested(self):
        """Test raw substitution into nested tool arguments"""
        request = plan_executor.apply_variables(
            MCPToolCall(toolName="lookup", arguments={"user": "$user_id", "tags": ["$name", 3]}),
            self.variables,
        )

        assert request.arguments == {"user": "42", "tags": ["ann", 3]}

    def test_resource_uri(self):
        """Test raw substitution into a resource URI"""
        request = plan_executor.apply_variables(MCPResourceRead(uri="users://$user_id"), self.variables)

        assert request.uri == "users://42"

    def test_mongo_operators_untouched(self):
        """Test that Mongo operators are not mistaken for variables"""
        request = plan_executor.apply_variables(
            MongoQuery(collection="events", filter='{"user": $user_id, "kind": {"$in": ["a"]}}'),
            self.variables,
        )

        assert request.filter == '{"user": 42, "kind": {"$in": ["a"]}}'

    def test_elasticsearch_query(self):
        """Test raw substitution into the query DSL"""
        request = plan_executor.apply_variables(
            ElasticsearchQuery(index="logs", query={"term": {"user": "$name"}}), self.variables
        )

        assert request.query == '{"term": {"user": "ann"}}'

    def test_original_unchanged(self):
        """Test that requests are copied, not mutated"""
        original = SqlQuery(sql="SELECT $user_id")
        plan_executor.apply_variables(original, self.variables)

        assert original.sql == "SELECT $user_id"

    def test_unbound_variables(self):
        """Test detection of tokens without a value"""
        request = SqlQuery(sql="SELECT * FROM t WHERE a = $user_id AND b = $other")

        assert plan_executor.unbound_variables(request, self.variables) == ["$other"]


if __name__ == "__main__":
    pytest.main([__file__])
