# Overview: WSGI entry point; exposes the Flask app for servers and the flask CLI.

from bookstore import create_app

app = create_app()
