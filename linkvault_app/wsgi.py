# linkvault_app/wsgi.py
# -*- coding: utf-8 -*-
from linkvault_app import create_app

app = create_app()
