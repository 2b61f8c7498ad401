from __future__ import annotations

import click
import pytest
from click.testing import CliRunner

from depengine.config import DepEngineConfig
from depengine.context import DepEngineContext, pass_context


@pytest.mark.unit
class TestDepEngineContext:
    """Tests for DepEngineContext."""

    def test_defaults(self) -> None:
        """Test a fresh context carries default configuration."""
        ctx = DepEngineContext()

        assert ctx.config_path is None
        assert ctx.verbose == 0
        assert ctx.color is True
        assert ctx.config == DepEngineConfig()

    def test_slots(self) -> None:
        """Test unknown attributes cannot be set."""
        ctx = DepEngineContext()

        with pytest.raises(AttributeError):
            ctx.unknown = True  # type: ignore[attr-defined]


@pytest.mark.unit
class TestPassContext:
    """Tests for the pass_context decorator."""

    def test_creates_context_when_missing(self) -> None:
        """Test commands run standalone still get a context."""
        seen = []

        @click.command()
        @pass_context
        def cmd(ctx: DepEngineContext) -> None:
            seen.append(ctx)

        result = CliRunner().invoke(cmd, [])

        assert result.exit_code == 0
        assert isinstance(seen[0], DepEngineContext)

    def test_uses_existing_context(self) -> None:
        """Test the object set on the group is passed through."""
        shared = DepEngineContext()
        shared.verbose = 2
        seen = []

        @click.group()
        @click.pass_context
        def group(click_ctx: click.Context) -> None:
            click_ctx.obj = shared

        @group.command()
        @pass_context
        def sub(ctx: DepEngineContext) -> None:
            seen.append(ctx)

        result = CliRunner().invoke(group, ["sub"])

        assert result.exit_code == 0
        assert seen == [shared]
