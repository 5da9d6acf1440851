"""
Общие модели данных, которыми движок обменивается с вызывающей стороной.
"""
