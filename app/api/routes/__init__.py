from . import automation, ideas, scripts, styles

__all__ = ["automation", "ideas", "scripts", "styles"]
