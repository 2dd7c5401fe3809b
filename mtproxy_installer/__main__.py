from mtproxy_installer.main import cli

cli()
