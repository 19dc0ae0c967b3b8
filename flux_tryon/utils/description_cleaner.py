"""Clean free-text garment descriptions before they go into a prompt."""

import re


# Phrases that add nothing to an image prompt
NOISE_PATTERNS = [
    r'\bnew arrival\b',
    r'\bbest seller\b',
    r'\blimited edition\b',
    r'\bfree (?:shipping|returns)\b',
    r'\bmust.have\b',
    r'\bwardrobe staple\b',
    r'\b(?:read|show) more\b',
    r'\badd to (?:cart|bag)\b',
    r'\bsize guide\b',
    r'\bsku:?\s*\w+',
    r'\bitem\s*#?\s*\d+',
    r'\d+%',
]

CATEGORIES = [
    'maxi dress', 'midi dress', 'mini dress', 'slip dress', 'wrap dress', 'dress',
    'blouse', 't-shirt', 'tank top', 'shirt', 'top', 'sweater', 'hoodie', 'cardigan',
    'jeans', 'trousers', 'pants', 'shorts', 'skirt', 'jumpsuit',
    'blazer', 'jacket', 'coat', 'sneakers', 'boots', 'shoes', 'heels', 'bag', 'hat',
]

FEATURE_PATTERNS = [
    r'(v-neck|crew neck|turtleneck|square neck|off.shoulder|halter|cowl neck)',
    r'(sleeveless|long.sleeve|short.sleeve|cap.sleeve|puff.sleeve)',
    r'(linen|cotton|silk|satin|velvet|jersey|chiffon|lace|denim|wool|leather|knit)',
    r'(fitted|relaxed|oversized|a-line|slim|tailored|cropped|high.waisted)',
    r'(floral|striped|plaid|polka dot|checked|ruffle|pleated|embroidered)',
]

MAX_CLEAN_LENGTH = 300
MAX_FEATURES = 5


def clean_description(raw_description: str | None) -> dict:
    """Strip marketing noise and pull out the visual facts of a garment.

    Returns:
        dict with 'category', 'clean_text' and 'key_features'
    """
    if not raw_description or not raw_description.strip():
        return {'category': None, 'clean_text': '', 'key_features': []}

    text = raw_description
    for pattern in NOISE_PATTERNS:
        text = re.sub(pattern, '', text, flags=re.IGNORECASE)

    text = text.replace('|', '. ').replace('•', '. ')
    text = re.sub(r'\s*,\s*', ', ', text)
    text = re.sub(r'\s+', ' ', text).strip(' ,.!')

    # Drop repeated sentences (scraped listings often duplicate them)
    seen = set()
    sentences = []
    for sentence in (s.strip(' !?') for s in text.split('.')):
        key = sentence.lower()[:30]
        if sentence and key not in seen:
            seen.add(key)
            sentences.append(sentence)
    clean_text = '. '.join(sentences)[:MAX_CLEAN_LENGTH].strip()

    lowered = clean_text.lower()
    category = next((c for c in CATEGORIES if c in lowered), None)

    key_features = []
    for pattern in FEATURE_PATTERNS:
        match = re.search(pattern, lowered)
        if match and match.group(0) not in key_features:
            key_features.append(match.group(0))

    return {
        'category': category,
        'clean_text': clean_text,
        'key_features': key_features[:MAX_FEATURES],
    }
