import re

from tether.exception import TetherError

DOLLAR_KEYWORD = re.compile(r"(\$([a-z_][a-z0-9_]*))", re.IGNORECASE)
DOLLAR_POSITIONAL = re.compile(r"(\$(\d+))")


def convert_sql_params(
    statement: str, positional_sub: str = r"%s", keyword_sub: str = r"%(\2)s"
) -> str:
    """Rewrite `$name` and `$1` placeholders into the style a driver binds

    Args:
        statement (str): Statement text using dollar placeholders
        positional_sub (str, optional): Replacement for `$1` style.
            Defaults to `%s`.
        keyword_sub (str, optional): Replacement for `$name` style, where
            `\\2` is the parameter name. Defaults to `%(\\2)s`.

    Raises:
        TetherError: When a statement mixes both placeholder styles

    Returns:
        str: The converted statement
    """
    keyword = bool(DOLLAR_KEYWORD.search(statement))
    positional = bool(DOLLAR_POSITIONAL.search(statement))
    if keyword and positional:
        raise TetherError(
            "Cannot mix positional and keyword parameters in one statement"
        )
    if keyword:
        return DOLLAR_KEYWORD.sub(keyword_sub, statement)
    if positional:
        return DOLLAR_POSITIONAL.sub(positional_sub, statement)
    return statement
