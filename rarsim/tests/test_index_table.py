"""
Tests for index tables.
"""

import pytest
import numpy as np

from rarsim import ConfigurationError, IndexTable


class TestIndexTable:
    """Tests for IndexTable lookups."""

    @pytest.fixture
    def table(self):
        return IndexTable.myopic(20)

    def test_myopic_is_posterior_mean(self, table):
        """Discount factor 0 gives the posterior mean."""
        assert table.value(3, 1) == pytest.approx(0.75)
        assert table.value(1, 1) == pytest.approx(0.5)
        assert table.discount == 0.0

    def test_lookup_matches_value(self, table):
        """Cell (n - s + 2, s + 1) holds the index of Beta(s, n - s)."""
        s, n = 3, 4
        assert table.lookup(n - s + 2, s + 1) == table.value(s, n - s)

    def test_vectorised_value(self, table):
        """Arrays of posteriors are looked up elementwise."""
        values = table.value(np.array([1, 2, 9]), np.array([1, 6, 1]))
        np.testing.assert_allclose(values, [0.5, 0.25, 0.9])

    def test_invalid_lookup(self, table):
        """Cells are 1-based."""
        with pytest.raises(IndexError):
            table.lookup(0, 1)

    def test_require(self, table):
        """Tables too small for the trial are rejected."""
        table.require(20, 20)
        with pytest.raises(ConfigurationError, match="too small"):
            table.require(25, 3)

    def test_values_read_only(self):
        """Tables cannot be modified, and the input array is copied."""
        values = np.ones((4, 4))
        table = IndexTable(values)

        assert values.flags.writeable
        with pytest.raises(ValueError):
            table.values[0, 0] = 2.0

    def test_not_two_dimensional(self):
        """Test that a vector is not an index table."""
        with pytest.raises(ConfigurationError, match="two dimensional"):
            IndexTable(np.ones(5))

    def test_from_csv(self, tmp_path, table):
        """Tables round trip through a header-less CSV."""
        path = tmp_path / "gittins.csv"
        np.savetxt(path, np.nan_to_num(table.values), delimiter=",")

        loaded = IndexTable.from_csv(str(path), family="binary", discount=0.5)

        assert loaded.shape == table.shape
        assert loaded.discount == 0.5
        assert loaded.value(3, 1) == pytest.approx(0.75)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
