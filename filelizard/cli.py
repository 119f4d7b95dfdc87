import os
import signal
import time

import click
import psutil
from rich.console import Console
from rich.table import Table

from filelizard import config
from filelizard import daemon as daemon_module
from filelizard.errors import FileLizardError

DEFAULT_PID_FILENAME = "filelizard.pid"


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to configuration TOML file.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, config_path, debug):
    """
    FileLizard CLI: Email a notification for every change in a directory.
    """
    config_path = config.resolve_config_path(config_path)
    try:
        cfg = config.load_config(config_path)
        if debug:
            cfg.setdefault("logging", {})["level"] = "DEBUG"
    except Exception as e:
        click.echo(f"Error loading configuration: {e}")
        ctx.abort()
    ctx.obj = {"config": cfg, "config_path": os.path.abspath(config_path), "debug": debug}


def get_pid_file(cfg, config_path):
    return os.path.join(config.get_log_dir(cfg, config_path), DEFAULT_PID_FILENAME)


def read_pid(pid_file):
    if not os.path.exists(pid_file):
        return None
    with open(pid_file, "r") as f:
        return int(f.read().strip())


@main.command()
@click.pass_context
def show_config(ctx):
    """
    Show the loaded configuration.
    """
    click.echo(ctx.obj.get("config"))


@main.command()
@click.pass_context
def check_config(ctx):
    """
    Validate the monitor settings.
    """
    try:
        settings = config.load_monitor_settings(ctx.obj.get("config"))
    except FileLizardError as e:
        click.echo(f"Invalid configuration: {e}")
        ctx.exit(1)

    table = Table(title="FileLizard Monitor Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    for field, value in vars(settings).items():
        table.add_row(field, str(value))
    Console().print(table)


@main.command()
@click.option("--foreground", is_flag=True, help="Run in foreground (not as daemon).")
@click.pass_context
def start(ctx, foreground):
    """
    Start the FileLizard service.
    """
    cfg = ctx.obj.get("config")
    config_path = ctx.obj.get("config_path")

    if foreground:
        click.echo("Running in foreground...")
        service, _ = daemon_module.create_service(cfg, config_path)
        try:
            service.run_forever()
        except FileLizardError as e:
            click.echo(f"Monitor Service failed to start: {e}")
            ctx.exit(1)
    else:
        click.echo("Starting daemon...")
        daemon_module.run_daemon(cfg, config_path, pid_file=get_pid_file(cfg, config_path))


@main.command()
@click.pass_context
def stop(ctx):
    """
    Stop the FileLizard daemon.
    """
    pid_file = get_pid_file(ctx.obj.get("config"), ctx.obj.get("config_path"))
    pid = read_pid(pid_file)
    if pid is None:
        click.echo("Daemon is not running (pid file not found).")
        return
    try:
        os.kill(pid, signal.SIGTERM)
        click.echo(f"Sent SIGTERM to daemon (pid {pid}).")
        time.sleep(2)
        if os.path.exists(pid_file):
            os.remove(pid_file)
    except OSError as e:
        click.echo(f"Error stopping daemon: {e}")


@main.command()
@click.pass_context
def status(ctx):
    """
    Check the status of the FileLizard daemon.
    """
    cfg = ctx.obj.get("config")
    pid = read_pid(get_pid_file(cfg, ctx.obj.get("config_path")))
    if pid is None:
        click.echo("Daemon is not running (pid file not found).")
        return
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        click.echo("Daemon process not found.")
        return

    status_table = Table(title="FileLizard Daemon Status")
    status_table.add_column("Property", style="cyan")
    status_table.add_column("Value", style="magenta")
    status_table.add_row("PID", str(proc.pid))
    status_table.add_row("CPU %", f"{proc.cpu_percent(interval=0.1)}")
    status_table.add_row("Memory %", f"{proc.memory_percent():.2f}")
    status_table.add_row("Memory RSS", str(proc.memory_info().rss))
    status_table.add_row("Threads", str(proc.num_threads()))
    status_table.add_row("Start Time", time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())))
    status_table.add_row("Watching", str(cfg.get("monitor", {}).get("PathToMonitor", "")))
    Console().print(status_table)


if __name__ == "__main__":
    main()
