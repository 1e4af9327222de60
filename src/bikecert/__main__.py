from bikecert.cli import app

app(prog_name="bikecert")
