from kubeforge.cli import app

app(prog_name="kubeforge")
