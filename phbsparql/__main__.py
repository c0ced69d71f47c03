"""Module used for ``python -m phbsparql`` execution."""

from phbsparql import cli


def main():
	cli.app(prog_name="phbsparql")


if __name__ == "__main__":
	main()
