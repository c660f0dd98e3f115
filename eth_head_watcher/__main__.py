from eth_head_watcher.cli.main import cli

if __name__ == '__main__':
    cli()
