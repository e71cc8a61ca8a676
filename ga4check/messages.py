# Canonical phrase per score tier. Localization swaps templates, never the tier logic.
MESSAGES = {
    'ja': {
        'score_2': 'GA4の導入が検出されませんでした。',
        'score_3': '標準的なGA4またはGTMの導入が検出されました。\n'
                   'Safariからの流入で40%機会損失している可能性があります。',
        'score_4': '高度な/サーバーサイド実装（sGTM / Google Tag Gateway）が検出されました。'
                   '計測欠損が最小限に抑えられている可能性があります。',
        'ua_warning': 'UAのタグが残っています。もしくはUAの計測IDでGA4を計測しています',
        'forbidden': '入力いただいたサイトは計測対象外です、詳しくは下記よりお問い合わせください',
        'invalid_url': 'URLの形式が正しくありません',
        'url_required': 'URLを入力してください',
        'fetch_failed': 'URLの取得に失敗しました: {reason}',
        'fetch_error': 'URLの取得中にエラーが発生しました: {reason}',
    },
    'en': {
        'score_2': 'No GA4 implementation was detected.',
        'score_3': 'A standard GA4 or GTM implementation was detected.\n'
                   'Visits from Safari may be losing up to 40% of their data.',
        'score_4': 'An advanced/server-side implementation (sGTM / Google Tag Gateway) was detected. '
                   'Measurement loss is likely kept to a minimum.',
        'ua_warning': 'Universal Analytics tags are still present, or GA4 is being measured with a UA id.',
        'forbidden': 'This site cannot be measured. Please contact us for details.',
        'invalid_url': 'Invalid URL format',
        'url_required': 'URL is required',
        'fetch_failed': 'Failed to fetch URL: {reason}',
        'fetch_error': 'Error fetching URL: {reason}',
    },
}

DEFAULT_LOCALE = 'ja'


def get_message(key: str, locale: str = DEFAULT_LOCALE, **values) -> str:
    catalog = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    template = catalog.get(key, MESSAGES[DEFAULT_LOCALE][key])
    return template.format(**values) if values else template
