# money_manager/core/categorizer.py
import logging
from datetime import datetime

from money_manager import database

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'Other'

# Order matters: the first category with a matching keyword wins.
DEFAULT_CATEGORY_KEYWORDS = {
    'Food': ['restaurant', 'cafe', 'pizza', 'burger', 'food', 'swiggy', 'zomato',
             'uber eats', 'lunch', 'dinner', 'coffee', 'tea'],
    'Entertainment': ['movie', 'cinema', 'gaming', 'game', 'spotify', 'netflix',
                      'amazon prime', 'youtube', 'entertainment'],
    'Travel': ['uber', 'ola', 'taxi', 'auto', 'travel', 'bus', 'train', 'flight',
               'airline', 'gas station', 'fuel', 'petrol', 'diesel'],
    'Shopping': ['amazon', 'flipkart', 'mall', 'store', 'shop', 'retail',
                 'supermarket', 'walmart', 'clothing', 'apparel'],
    'Utilities': ['electricity', 'water', 'gas', 'internet', 'mobile', 'phone',
                  'utility', 'bill', 'recharge'],
    'Salary': ['salary', 'wage', 'payment', 'income', 'bonus'],
    'Medical': ['hospital', 'doctor', 'medicine', 'pharmacy', 'health', 'medical',
                'clinic', 'dentist'],
    'Education': ['school', 'college', 'university', 'course', 'training',
                  'education', 'tuition'],
    'Rent': ['rent', 'landlord', 'apartment', 'housing'],
    'Savings': ['savings', 'save', 'deposit', 'investment', 'mutual', 'fund'],
    'Investment': ['invest', 'trading', 'stock', 'share', 'crypto', 'gold'],
    'Bills': ['bill', 'invoice', 'payment', 'dues'],
    'Loan': ['loan', 'emi', 'credit', 'borrow'],
    'Insurance': ['insurance', 'policy', 'premium'],
    'Gifts': ['gift', 'present', 'donation'],
    'Refund': ['refund', 'return', 'credit back', 'returned'],
    'Other': [],
}


def categorize(merchant, merchant_mappings=None, keywords=None):
    """Return the category name for a merchant.

    User-learned ``merchant_mappings`` (merchant fragment -> category) are
    checked before the keyword table. Both match case-insensitively on
    substrings.
    """
    if not merchant:
        return DEFAULT_CATEGORY

    name = merchant.lower()
    for stored, category in (merchant_mappings or {}).items():
        if stored.lower() in name:
            logger.debug("Mapping hit: %s -> %s", merchant, category)
            return category

    return categorize_by_keywords(name, keywords)


def categorize_by_keywords(merchant, keywords=None):
    name = merchant.lower()
    for cat, words in (keywords or DEFAULT_CATEGORY_KEYWORDS).items():
        for kw in words:
            if kw.lower() in name:
                logger.debug("Categorized: %s -> %s", merchant, cat)
                return cat
    return DEFAULT_CATEGORY


def suggest_by_amount(amount, txn_type):
    """Heuristic category suggestions from the size and direction of a transaction."""
    suggestions = []
    if txn_type == 'atm':
        suggestions.append('Shopping')
    if txn_type == 'credit' and amount > 10000:
        suggestions.append('Salary')
    if txn_type == 'debit' and amount < 500:
        suggestions.extend(['Food', 'Shopping'])
    if txn_type == 'debit' and 500 <= amount < 5000:
        suggestions.extend(['Shopping', 'Utilities'])
    if txn_type == 'debit' and amount >= 5000:
        suggestions.extend(['Rent', 'Travel', 'Medical'])
    return suggestions or [DEFAULT_CATEGORY]


def categorize_multiple(transactions, merchant_mappings=None, keywords=None):
    """Categorize a batch; returns ``(index, category)`` pairs in input order."""
    results = []
    for idx, tx in enumerate(transactions):
        merchant = tx.get('merchant') if isinstance(tx, dict) else getattr(tx, 'merchant', None)
        results.append((idx, categorize(merchant, merchant_mappings, keywords)))
    return results


def learn_mapping(db_path, user_id, merchant, category_name):
    """
    Remember a user's category choice for a merchant.

    The merchant name is normalised (trimmed, lower-cased) before storing.
    Repeat assignments bump ``visit_count`` and move the mapping to the
    new category.
    """
    name = ' '.join((merchant or '').split()).lower()
    if not name:
        raise ValueError("merchant must not be empty")
    category = database.get_or_create_category(db_path, user_id, category_name)
    existing = database.get_merchant_mapping(db_path, user_id, name)
    if existing is None:
        mapping = database.create_merchant_mapping(db_path, user_id, name, category.id)
    else:
        mapping = database.update_merchant_mapping(
            db_path,
            existing.id,
            category_id=category.id,
            visit_count=existing.visit_count + 1,
            last_assigned_at=datetime.now().isoformat(timespec='seconds'),
        )
    logger.info("Mapping learned: %s -> %s", name, category.name)
    return mapping
