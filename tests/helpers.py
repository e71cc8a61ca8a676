from unittest.mock import MagicMock

GTM_URL = 'https://www.googletagmanager.com/gtm.js?id={}'


def make_response(status_code=200, text='', reason='OK'):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.reason = reason
    return response


def fake_session(routes):
    """Session whose ``get`` serves ``routes``: url -> html, (status, text) or an exception.

    Unknown URLs answer 404.
    """
    session = MagicMock()

    def get(url, **kwargs):
        value = routes.get(url)
        if value is None:
            return make_response(404, '', 'Not Found')
        if isinstance(value, Exception):
            raise value
        if isinstance(value, tuple):
            status_code, text = value
            return make_response(status_code, text, 'OK' if status_code < 400 else 'Error')
        return make_response(200, value)

    session.get.side_effect = get
    return session


def requested_urls(session):
    return [call.args[0] for call in session.get.call_args_list]


def page(body='', head=''):
    return f'<!DOCTYPE html><html><head>{head}</head><body>{body}</body></html>'
