from decimal import Decimal

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.text import slugify

from backend.core.models import User


class Product(models.Model):
    """Ready-to-wear product sold through the storefront"""
    CATEGORY_CHOICES = [
        ('agbada', 'Agbada'),
        ('kaftan', 'Kaftan'),
        ('senator', 'Senator'),
        ('ankara', 'Ankara'),
        ('suit', 'Suit'),
        ('shirt', 'Shirt'),
        ('trouser', 'Trouser'),
        ('dress', 'Dress'),
        ('accessories', 'Accessories'),
    ]

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=280, unique=True)
    description = models.TextField()
    category = models.CharField(max_length=50, choices=CATEGORY_CHOICES)
    material = models.CharField(max_length=200)
    product_owner = models.CharField(max_length=100, default='self')
    is_featured = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = self.generate_unique_slug(self.name)
        super().save(*args, **kwargs)

    @classmethod
    def generate_unique_slug(cls, name):
        base = slugify(name)[:250] or 'product'
        slug = base
        counter = 2
        while cls.objects.filter(slug=slug).exists():
            slug = f'{base}-{counter}'
            counter += 1
        return slug

    class Meta:
        db_table = 'products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['category'], name='product_category_idx'),
            models.Index(fields=['is_featured'], name='product_featured_idx'),
        ]


class ProductVariant(models.Model):
    """Color / size variant holding price and stock"""
    SIZE_CHOICES = [
        ('XS', 'XS'),
        ('S', 'S'),
        ('M', 'M'),
        ('L', 'L'),
        ('XL', 'XL'),
        ('XXL', 'XXL'),
        ('XXXL', 'XXXL'),
        ('custom', 'Custom'),
    ]
    MEASUREMENT_KEYS = [
        'neck', 'shoulder', 'chest', 'shortSleeve', 'longSleeve', 'roundSleeve',
        'tummy', 'topLength', 'waist', 'laps', 'kneelLength', 'roundKneel',
        'trouserLength', 'ankle', 'quarterLength',
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    image_urls = models.JSONField(default=list)
    color = models.CharField(max_length=50)
    size = models.CharField(max_length=10, choices=SIZE_CHOICES)
    quantity = models.PositiveIntegerField(default=0)
    reserved_quantity = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    discount_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True,
                                         validators=[MinValueValidator(Decimal('0'))])
    in_stock = models.BooleanField(default=True)
    measurements = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.color} / {self.size}"

    @property
    def effective_price(self):
        """Discount price applies only when positive and lower than the list price"""
        if self.discount_price is not None and Decimal('0') < self.discount_price < self.price:
            return self.discount_price
        return self.price

    @property
    def available_quantity(self):
        return max(self.quantity - self.reserved_quantity, 0)

    class Meta:
        db_table = 'product_variants'
        ordering = ['id']


class MeasurementTemplate(models.Model):
    """Named list of body measurements a custom order must collect"""
    title = models.CharField(max_length=200)
    fields = models.JSONField(default=list, help_text='List of {"name": "..."} entries')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    @property
    def field_names(self):
        return [f.get('name') for f in self.fields if isinstance(f, dict) and f.get('name')]

    class Meta:
        db_table = 'measurement_templates'
        ordering = ['title']


class UploadedImage(models.Model):
    """Record of an image uploaded to the CDN by an admin"""
    image_url = models.URLField(max_length=1000, unique=True)
    public_id = models.CharField(max_length=500, blank=True, null=True)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='uploaded_images')
    file_name = models.CharField(max_length=255, blank=True, null=True)
    file_size = models.PositiveIntegerField(null=True, blank=True)
    mime_type = models.CharField(max_length=100, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.file_name or self.image_url

    class Meta:
        db_table = 'uploaded_images'
        ordering = ['-created_at']


class Review(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='reviews')
    name = models.CharField(max_length=200)
    email = models.EmailField()
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(max_length=2000)
    is_verified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} - {self.product.name} ({self.rating})"

    class Meta:
        db_table = 'product_reviews'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', '-created_at'], name='review_product_created_idx'),
        ]
