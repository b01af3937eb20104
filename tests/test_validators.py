"""
Unit tests for the read-only SQL safety validator
"""

import pytest

from datanexus.utils.validators import find_forbidden_keyword, validate_query_safety


class TestValidateQuerySafety:
    """Test cases for validate_query_safety"""

    @pytest.mark.parametrize("sql", [
        "SELECT * FROM users",
        "select id, name from users where id = 1;",
        "WITH recent AS (SELECT * FROM orders) SELECT * FROM recent",
        "SELECT u.name, COUNT(*) FROM users u JOIN orders o ON o.user_id = u.id GROUP BY u.name",
        "  SELECT 1  ",
    ])
    def test_accepts_read_only_queries(self, sql):
        """Test that SELECT and WITH queries are valid"""
        result = validate_query_safety(sql)

        assert result.is_valid
        assert result.reason is None

    @pytest.mark.parametrize("sql", [None, "", "   "])
    def test_rejects_empty_query(self, sql):
        """Test that blank input is rejected"""
        result = validate_query_safety(sql)

        assert not result.is_valid
        assert result.reason == "Query cannot be empty"

    @pytest.mark.parametrize("keyword", [
        "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "CREATE", "TRUNCATE",
        "GRANT", "REVOKE", "EXEC", "EXECUTE", "CALL", "MERGE", "REPLACE",
    ])
    def test_rejects_forbidden_keywords(self, keyword):
        """Test that every forbidden keyword is named in the reason"""
        result = validate_query_safety(f"SELECT * FROM t WHERE x = 1 {keyword.lower()} y")

        assert not result.is_valid
        assert keyword in result.reason
        assert "Only SELECT queries are allowed" in result.reason

    def test_rejects_stacked_drop(self):
        """Test that a trailing DROP after a SELECT is caught"""
        result = validate_query_safety("SELECT * FROM users; DROP TABLE users;")

        assert not result.is_valid
        assert "DROP" in result.reason

    def test_keyword_inside_identifier_is_allowed(self):
        """Test that keywords only match as whole words"""
        result = validate_query_safety("SELECT created_at, updated_by FROM deleted_items")

        assert result.is_valid

    def test_rejects_multiple_selects(self):
        """Test that stacked statements are rejected even when all are SELECT"""
        result = validate_query_safety("SELECT 1; SELECT 2")

        assert not result.is_valid
        assert result.reason == "Multiple statements are not allowed"

    def test_rejects_non_select_statement(self):
        """Test that statements of another type are rejected"""
        result = validate_query_safety("SHOW TABLES")

        assert not result.is_valid
        assert result.reason == "Query must start with SELECT or WITH (CTE)"


class TestFindForbiddenKeyword:
    """Test cases for find_forbidden_keyword"""

    def test_returns_upper_cased_keyword(self):
        """Test that the match is reported upper-cased"""
        assert find_forbidden_keyword("select 1; delete from t") == "DELETE"

    def test_returns_empty_when_clean(self):
        """Test that clean SQL has no match"""
        assert find_forbidden_keyword("SELECT * FROM t") == ""


if __name__ == "__main__":
    pytest.main([__file__])
