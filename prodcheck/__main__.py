from prodcheck.main import cli

cli()
