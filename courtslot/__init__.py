from courtslot.app import create_app
