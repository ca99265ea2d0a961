from app.changebag import create_app

app = create_app()
