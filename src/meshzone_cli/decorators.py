"""Command classes for the zone commands.

``ZoneCommand`` maps click's own parse errors onto the zone error taxonomy
and renders every ZoneError as a severity-tagged message with the right
exit code, so command bodies can simply raise.
"""

import click

from . import formatters as fmt
from .errors import InvalidValue, UnknownOption, ValidationError, ZoneError


def _usage_error(ctx: click.Context, err: ValidationError) -> None:
    fmt.error(str(err))
    click.echo(ctx.get_usage())
    click.echo(f"Try '{ctx.command_path} --help' for help.")
    ctx.exit(err.exit_code)


class ZoneCommand(click.Command):
    """Command class that reports zone errors instead of tracebacks.

    Validation errors are printed together with the usage text; every other
    ZoneError is printed on its own. Both exit with the error's exit code.
    """

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.NoSuchOption as e:
            _usage_error(ctx, UnknownOption(option=e.option_name))
        except click.BadParameter as e:
            hint = e.param.opts[0] if e.param is not None and e.param.opts else ""
            _usage_error(ctx, InvalidValue(message=e.message, option=hint))
        except click.UsageError as e:
            _usage_error(ctx, ValidationError(message=e.message))

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ValidationError as e:
            _usage_error(ctx, e)
        except ZoneError as e:
            fmt.error(str(e))
            ctx.exit(e.exit_code)
