"""Shared click parameter types."""

import math

import click


class FiniteFloat(click.ParamType):
    """A float that rejects nan and inf.

    Plain click floats accept both, and neither means anything as an amount.
    """

    name = "number"

    def convert(self, value, param, ctx):
        if isinstance(value, float) and math.isfinite(value):
            return value
        try:
            number = float(value)
        except (TypeError, ValueError):
            self.fail(f"'{value}' is not a valid number.", param, ctx)

        if not math.isfinite(number):
            self.fail(f"'{value}' is not a finite number.", param, ctx)
        return number


AMOUNT = FiniteFloat()
